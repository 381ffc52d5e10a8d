"""Tests for the sqlglot-backed syntax validator."""

from __future__ import annotations

import pytest
from sqlglot import exp

from db_guardian.core.validate import SqlValidator, resolve_dialect
from db_guardian.errors import ConfigurationError


@pytest.fixture
def validator() -> SqlValidator:
    return SqlValidator("postgres")


class TestResolveDialect:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("postgresql", "postgres"),
            ("PostgreSQL", "postgres"),
            ("mssql", "tsql"),
            ("sqlserver", "tsql"),
            ("mysql", "mysql"),
            ("mariadb", "mysql"),
        ],
    )
    def test_aliases(self, name, expected):
        assert resolve_dialect(name) == expected

    @pytest.mark.parametrize("name", [None, "", "generic", "ansi"])
    def test_generic(self, name):
        assert resolve_dialect(name) is None

    def test_unknown_dialect(self):
        with pytest.raises(ConfigurationError):
            resolve_dialect("cobol-db")

    def test_validator_rejects_unknown_dialect(self):
        with pytest.raises(ConfigurationError):
            SqlValidator("cobol-db")


class TestValidate:
    def test_select(self, validator):
        parsed = validator.validate("SELECT id FROM users WHERE id = 1;")
        assert parsed is not None
        assert parsed.is_select
        assert isinstance(parsed.statement, exp.Select)
        assert parsed.text == "SELECT id FROM users WHERE id = 1;"

    @pytest.mark.parametrize(
        "sql, node",
        [
            ("UPDATE users SET active = false", exp.Update),
            ("DELETE FROM users WHERE id = 1", exp.Delete),
            ("INSERT INTO users (id) VALUES (1)", exp.Insert),
            ("CREATE TABLE t (id INT)", exp.Create),
        ],
    )
    def test_writes_are_not_selects(self, validator, sql, node):
        parsed = validator.validate(sql)
        assert parsed is not None
        assert isinstance(parsed.statement, node)
        assert not parsed.is_select

    def test_union_is_read(self, validator):
        parsed = validator.validate("SELECT id FROM a UNION SELECT id FROM b")
        assert parsed is not None
        assert parsed.is_select

    def test_placeholders_parse(self, validator):
        assert validator.validate("SELECT id FROM users WHERE name = ?") is not None
        assert validator.validate("SELECT id FROM users WHERE name = :name") is not None

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   ;",
            "SELECT * FROM users WHERE (id = 1",
            "Please DELETE this comment before release",
        ],
    )
    def test_rejects_non_sql(self, validator, text):
        assert validator.validate(text) is None

    def test_first_statement_wins(self, validator):
        parsed = validator.validate("UPDATE t SET a = 1; SELECT 1")
        assert isinstance(parsed.statement, exp.Update)

    def test_parser_recursion_limit_drops_candidate(self, validator, monkeypatch):
        def exhausted(*args, **kwargs):
            raise RecursionError("maximum recursion depth exceeded")

        monkeypatch.setattr("db_guardian.core.validate.sqlglot.parse", exhausted)
        assert validator.validate("SELECT id FROM users") is None

    def test_deep_nesting_does_not_raise(self, validator):
        sql = "SELECT " + "(" * 300 + "1" + ")" * 300 + " FROM t"
        parsed = validator.validate(sql)
        assert parsed is None or parsed.is_select
