"""
db_guardian.api
===============

Programmatic entrypoints for using db_guardian as a library.

Goals:
  - No argparse / HTTP dependencies
  - Same discovery, detection and aggregation as the orchestrator

Non-goals:
  - Owning persistence: ``scan_project`` returns the report and stores
    nothing.  Use ``AnalysisService`` for stored, tracked runs.

Usage::

    from db_guardian.api import scan_project, analyze_sql

    report = scan_project("path/to/repo", dialect="postgres")
    issues = analyze_sql("UPDATE users SET active = false")
"""

from __future__ import annotations

from concurrent.futures import Executor
from pathlib import Path
from typing import Iterable

from db_guardian.core.config import EngineSettings
from db_guardian.core.discover import discover_files
from db_guardian.core.runner import FileAnalyzer, display_path
from db_guardian.detection.base import is_test_path
from db_guardian.detection.engine import DetectionEngine
from db_guardian.errors import NoCandidateFilesError
from db_guardian.model.issue import ReportIssue
from db_guardian.model.report import AnalysisReport
from db_guardian.model.run import AnalysisConfig, AnalysisRun
from db_guardian.reports.aggregate import aggregate


def _to_path(p: str | Path) -> Path:
    return p if isinstance(p, Path) else Path(p)


# ── scan_project ────────────────────────────────────────────────────


def scan_project(
    root: str | Path,
    *,
    dialect: str | None = None,
    migration_paths: Iterable[str | Path] = (),
    schema_path: str | Path | None = None,
    code_path: str | Path | None = None,
    settings: EngineSettings | None = None,
    executor: Executor | None = None,
    production_only: bool = False,
) -> AnalysisReport:
    """Analyze *root* and return the aggregated report.

    Parameters
    ----------
    root:
        Source root (directory or single file).
    dialect:
        SQL dialect; defaults to the settings file's ``dialect``.
    settings:
        Engine settings.  Discovered from *root* when omitted.
    executor:
        Optional pool for per-file work; files are analyzed serially
        without one.
    production_only:
        Leave test files (see ``is_test_path``) out of the analysis entirely.

    Raises
    ------
    NoCandidateFilesError
        If discovery finds nothing to analyze.
    """
    root_path = _to_path(root)
    settings = settings or EngineSettings.discover(root_path)
    config = AnalysisConfig(
        dialect=dialect or settings.dialect,
        source=str(root_path),
        migration_paths=tuple(str(p) for p in migration_paths),
        schema_path=str(schema_path) if schema_path else None,
        code_path=str(code_path) if code_path else None,
    )

    files = discover_files(config, settings)
    if production_only:
        files = [c for c in files if not is_test_path(display_path(c.path, root_path))]
    if not files:
        raise NoCandidateFilesError(config.source)

    analyzer = FileAnalyzer(config.dialect, settings, root=root_path)
    if executor is None:
        results = [analyzer(c) for c in files]
    else:
        results = list(executor.map(analyzer, files))

    return aggregate(AnalysisRun(config=config), results)


# ── analyze_sql ─────────────────────────────────────────────────────


def analyze_sql(
    text: str,
    *,
    dialect: str | None = None,
    path: str = "query.sql",
    settings: EngineSettings | None = None,
) -> list[ReportIssue]:
    """Run the detectors over one SQL string.  Unparseable text yields ``[]``."""
    engine = DetectionEngine(settings)
    return engine.analyze_text(text, path, dialect=dialect)
