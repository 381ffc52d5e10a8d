"""Shared fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from db_guardian.core.config import EngineSettings
from db_guardian.detection.engine import DetectionEngine
from db_guardian.model.run import AnalysisConfig

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES


@pytest.fixture
def ecommerce_repo() -> Path:
    """Kotlin/Python/SQL sample project with known anti-patterns."""
    return FIXTURES / "repos" / "ecommerce"


@pytest.fixture
def make_repo(tmp_path: Path) -> Callable[[dict[str, str]], Path]:
    """Write ``{relative_path: content}`` under tmp_path and return the root."""

    def _make(files: dict[str, str]) -> Path:
        root = tmp_path / "repo"
        for rel, content in files.items():
            target = root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        root.mkdir(exist_ok=True)
        return root

    return _make


@pytest.fixture
def engine() -> DetectionEngine:
    return DetectionEngine(EngineSettings())


@pytest.fixture
def analysis_config(ecommerce_repo: Path) -> AnalysisConfig:
    return AnalysisConfig(dialect="postgres", source=str(ecommerce_repo))
