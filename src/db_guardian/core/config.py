"""Engine settings, loaded from ``.db-guardian.yaml`` in the source root.

Example::

    dialect: postgres
    follow_symlinks: false
    max_depth: 40
    ignore_dirs:
      - generated
    disabled_techniques:
      - POTENTIAL_MISSING_INDEX
    confidence_overrides:
      ORDER_BY_WITHOUT_LIMIT: 0.4
    suppress_in_tests: true
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from db_guardian.errors import ConfigurationError
from db_guardian.rules import ALL_TECHNIQUES

# Directory names never descended into.
DEFAULT_IGNORE_DIRS = frozenset(
    {
        ".git",
        ".github",
        ".gradle",
        ".idea",
        ".venv",
        "venv",
        "__pycache__",
        "node_modules",
        "dist",
        "build",
        "target",
        "out",
        ".tox",
        ".mypy_cache",
        ".pytest_cache",
    }
)

CONFIG_FILENAMES = (
    ".db-guardian.yaml",
    ".db-guardian.yml",
    "db-guardian.yaml",
)


def _as_int(key: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{key} is not an integer", {"value": value}) from exc


@dataclass(frozen=True)
class EngineSettings:
    """Per-deployment tuning of discovery and detection."""

    dialect: str = "postgres"
    ignore_dirs: frozenset[str] = DEFAULT_IGNORE_DIRS
    follow_symlinks: bool = False
    max_depth: int | None = None
    max_file_bytes: int = 2_000_000  # 2 MB safety limit
    disabled_techniques: frozenset[str] = frozenset()
    confidence_overrides: dict[str, float] = field(default_factory=dict)
    suppress_in_tests: bool = True

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "EngineSettings":
        """Build settings from a parsed YAML mapping, validating every key."""
        defaults = cls()

        disabled = frozenset(data.get("disabled_techniques") or ())
        unknown = sorted(disabled - set(ALL_TECHNIQUES))
        if unknown:
            raise ConfigurationError(
                "Unknown technique in disabled_techniques",
                {"techniques": ",".join(unknown)},
            )

        overrides: dict[str, float] = {}
        for technique, value in (data.get("confidence_overrides") or {}).items():
            if technique not in ALL_TECHNIQUES:
                raise ConfigurationError(
                    "Unknown technique in confidence_overrides",
                    {"technique": technique},
                )
            try:
                score = float(value)
            except (TypeError, ValueError) as exc:
                raise ConfigurationError(
                    "Confidence override is not a number",
                    {"technique": technique, "value": value},
                ) from exc
            if not 0.0 <= score <= 1.0:
                raise ConfigurationError(
                    "Confidence override must be within [0, 1]",
                    {"technique": technique, "value": score},
                )
            overrides[technique] = score

        max_depth = data.get("max_depth", defaults.max_depth)
        if max_depth is not None:
            max_depth = _as_int("max_depth", max_depth)
        if max_depth is not None and max_depth < 0:
            raise ConfigurationError("max_depth cannot be negative", {"value": max_depth})

        return cls(
            dialect=str(data.get("dialect", defaults.dialect)),
            ignore_dirs=defaults.ignore_dirs | frozenset(data.get("ignore_dirs") or ()),
            follow_symlinks=bool(data.get("follow_symlinks", defaults.follow_symlinks)),
            max_depth=max_depth,
            max_file_bytes=_as_int(
                "max_file_bytes", data.get("max_file_bytes", defaults.max_file_bytes)
            ),
            disabled_techniques=disabled,
            confidence_overrides=overrides,
            suppress_in_tests=bool(data.get("suppress_in_tests", defaults.suppress_in_tests)),
        )

    @classmethod
    def load(cls, config_path: Path) -> "EngineSettings":
        """Load settings from a YAML file.  A missing file yields defaults."""
        if not config_path.exists():
            return cls()

        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(
                "Settings file is not valid YAML", {"path": str(config_path)}
            ) from exc

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Settings file must contain a mapping", {"path": str(config_path)}
            )
        return cls.from_mapping(data)

    @classmethod
    def discover(cls, root: Path) -> "EngineSettings":
        """Auto-discover settings from the source root."""
        if root.is_file():
            root = root.parent
        for name in CONFIG_FILENAMES:
            candidate = root / name
            if candidate.exists():
                return cls.load(candidate)
        return cls()
