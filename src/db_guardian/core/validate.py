"""Syntax validation. Keeps only candidates that parse as a SQL statement.

A candidate that fails to parse is far more likely an extraction false
positive than a broken production query, so failures are dropped silently.
"""

from __future__ import annotations

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from db_guardian.errors import ConfigurationError
from db_guardian.model.fragment import ParsedQuery

# Common spellings that sqlglot knows under another name.
DIALECT_ALIASES = {
    "postgresql": "postgres",
    "pg": "postgres",
    "pgsql": "postgres",
    "mssql": "tsql",
    "sqlserver": "tsql",
    "mariadb": "mysql",
    "plsql": "oracle",
    "generic": "",
    "ansi": "",
    "sql": "",
}


def _expression_types(*names: str) -> tuple[type, ...]:
    # Class names moved between sqlglot releases; take what exists.
    return tuple(t for t in (getattr(exp, n, None) for n in names) if isinstance(t, type))


STATEMENT_TYPES = _expression_types(
    "Query",
    "Select",
    "Union",
    "Intersect",
    "Except",
    "Insert",
    "Update",
    "Delete",
    "Merge",
    "Create",
    "Alter",
    "AlterTable",
    "Drop",
    "TruncateTable",
)
READ_TYPES = _expression_types("Select", "Union", "Intersect", "Except", "SetOperation")


def resolve_dialect(name: str | None) -> str | None:
    """Map *name* to a sqlglot dialect name; ``None`` means the generic grammar.

    Raises ``ConfigurationError`` for a dialect sqlglot does not know.
    """
    key = (name or "").strip().lower()
    key = DIALECT_ALIASES.get(key, key)
    if not key:
        return None
    try:
        sqlglot.Dialect.get_or_raise(key)
    except ValueError as exc:
        raise ConfigurationError("Unsupported SQL dialect", {"dialect": name}) from exc
    return key


class SqlValidator:
    """Parse candidates with sqlglot under one dialect."""

    def __init__(self, dialect: str | None = None):
        self.dialect = resolve_dialect(dialect)

    def validate(self, text: str) -> ParsedQuery | None:
        sql = text.strip().rstrip(";").strip()
        if not sql:
            return None
        try:
            statements = [s for s in sqlglot.parse(sql, read=self.dialect) if s is not None]
        except (SqlglotError, RecursionError):
            # Deeply nested input exhausts the recursive-descent parser.
            return None
        if not statements:
            return None
        statement = statements[0]
        # sqlglot falls back to an opaque Command for syntax it cannot model.
        if isinstance(statement, exp.Command) or not isinstance(statement, STATEMENT_TYPES):
            return None
        return ParsedQuery(
            text=text.strip(),
            statement=statement,
            is_select=isinstance(statement, READ_TYPES),
        )
