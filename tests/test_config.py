"""Tests for EngineSettings loading and discovery."""

from __future__ import annotations

from pathlib import Path

import pytest

from db_guardian.core.config import DEFAULT_IGNORE_DIRS, EngineSettings
from db_guardian.errors import ConfigurationError


class TestEngineSettings:
    def test_defaults(self):
        settings = EngineSettings()
        assert settings.dialect == "postgres"
        assert settings.follow_symlinks is False
        assert settings.max_depth is None
        assert settings.suppress_in_tests is True
        assert "node_modules" in settings.ignore_dirs

    def test_load_yaml(self, tmp_path: Path):
        config_file = tmp_path / ".db-guardian.yaml"
        config_file.write_text("""
dialect: mysql
max_depth: 5
ignore_dirs:
  - generated
disabled_techniques:
  - POTENTIAL_MISSING_INDEX
confidence_overrides:
  ORDER_BY_WITHOUT_LIMIT: 0.4
suppress_in_tests: false
""")
        settings = EngineSettings.load(config_file)
        assert settings.dialect == "mysql"
        assert settings.max_depth == 5
        assert "generated" in settings.ignore_dirs
        assert DEFAULT_IGNORE_DIRS <= settings.ignore_dirs
        assert settings.disabled_techniques == {"POTENTIAL_MISSING_INDEX"}
        assert settings.confidence_overrides == {"ORDER_BY_WITHOUT_LIMIT": 0.4}
        assert settings.suppress_in_tests is False

    def test_load_missing_file_gives_defaults(self, tmp_path: Path):
        assert EngineSettings.load(tmp_path / "nope.yaml") == EngineSettings()

    def test_discover(self, tmp_path: Path):
        (tmp_path / ".db-guardian.yml").write_text("dialect: sqlite")
        assert EngineSettings.discover(tmp_path).dialect == "sqlite"

    def test_discover_from_file_uses_parent(self, tmp_path: Path):
        (tmp_path / "db-guardian.yaml").write_text("dialect: tsql")
        target = tmp_path / "query.sql"
        target.write_text("SELECT 1;")
        assert EngineSettings.discover(target).dialect == "tsql"

    def test_discover_missing_config(self, tmp_path: Path):
        assert EngineSettings.discover(tmp_path).dialect == "postgres"


class TestEngineSettingsValidation:
    def test_unknown_disabled_technique(self):
        with pytest.raises(ConfigurationError, match="disabled_techniques"):
            EngineSettings.from_mapping({"disabled_techniques": ["NOT_A_RULE"]})

    def test_unknown_override_technique(self):
        with pytest.raises(ConfigurationError):
            EngineSettings.from_mapping({"confidence_overrides": {"NOPE_RULE": 0.5}})

    def test_override_out_of_range(self):
        with pytest.raises(ConfigurationError):
            EngineSettings.from_mapping({"confidence_overrides": {"SELECT_STAR_USAGE": 1.5}})

    def test_override_not_a_number(self):
        with pytest.raises(ConfigurationError):
            EngineSettings.from_mapping({"confidence_overrides": {"SELECT_STAR_USAGE": "high"}})

    def test_negative_max_depth(self):
        with pytest.raises(ConfigurationError):
            EngineSettings.from_mapping({"max_depth": -1})

    @pytest.mark.parametrize("key", ["max_depth", "max_file_bytes"])
    def test_non_integer_limits(self, key):
        with pytest.raises(ConfigurationError, match=key):
            EngineSettings.from_mapping({key: "deep"})

    def test_invalid_yaml(self, tmp_path: Path):
        bad = tmp_path / ".db-guardian.yaml"
        bad.write_text("dialect: [unclosed")
        with pytest.raises(ConfigurationError):
            EngineSettings.load(bad)

    def test_non_mapping_yaml(self, tmp_path: Path):
        bad = tmp_path / ".db-guardian.yaml"
        bad.write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError):
            EngineSettings.load(bad)
