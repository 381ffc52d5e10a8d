"""AnalysisService: the orchestrator that owns a run from start to report.

This is the only place that wires discovery -> per-file analysis ->
aggregation -> storage.  Per-file work fans out on a CPU pool; report
persistence runs as a small task graph on an I/O pool::

    store_json ─────┐
                    ├─> finalize_run
    store_markdown ─┘

``finalize_run`` waits on both writes, so a COMPLETED run always has both
representations stored.
"""

from __future__ import annotations

import json
import logging
import os
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import timedelta
from pathlib import Path
from typing import Any

from db_guardian.contracts.load import validate_instance
from db_guardian.core.config import EngineSettings
from db_guardian.core.discover import discover_files
from db_guardian.core.runner import FileAnalysis, FileAnalyzer
from db_guardian.core.taskgraph import TaskGraph
from db_guardian.errors import (
    NoCandidateFilesError,
    PipelineError,
    ReportNotAvailableError,
    RunNotFoundError,
)
from db_guardian.events import (
    DETECTION_FINISHED,
    FILE_ANALYZED,
    FILE_SKIPPED,
    FILES_DISCOVERED,
    REPORT_STORED,
    RUN_COMPLETED,
    RUN_FAILED,
    RUN_STARTED,
    AnalysisEvent,
    EventSink,
    LoggingEventSink,
)
from db_guardian.model import AnalysisMode
from db_guardian.model.report import AnalysisReport
from db_guardian.model.run import AnalysisConfig, AnalysisRun, ReportRef
from db_guardian.reports.aggregate import aggregate
from db_guardian.reports.exporters import (
    JSON_CONTENT_TYPE,
    MARKDOWN_CONTENT_TYPE,
    render_json,
    render_markdown,
)
from db_guardian.storage.artifacts import DEFAULT_URL_TTL, ArtifactStore
from db_guardian.storage.runs import RunStore

_logger = logging.getLogger(__name__)

REPORT_FORMATS = ("json", "markdown")


def default_cpu_workers() -> int:
    return os.cpu_count() or 1


def default_io_workers() -> int:
    return min(32, 4 * default_cpu_workers())


def _ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class AnalysisService:
    """Run analyses against a run store and an artifact store.

    Parameters
    ----------
    run_store:
        Persists ``AnalysisRun`` records.
    artifact_store:
        Persists rendered reports and mints signed URLs for them.
    events:
        Receives progress events.  Defaults to ``LoggingEventSink``.
    settings:
        Engine settings applied to every run.  When ``None`` each run
        discovers a settings file in its source root.
    cpu_executor / io_executor:
        Pools for per-file analysis and report persistence.  Pools passed
        in are not shut down by ``close()``.
    """

    def __init__(
        self,
        run_store: RunStore,
        artifact_store: ArtifactStore,
        *,
        events: EventSink | None = None,
        settings: EngineSettings | None = None,
        cpu_executor: Executor | None = None,
        io_executor: Executor | None = None,
    ):
        self.run_store = run_store
        self.artifact_store = artifact_store
        self.events = events or LoggingEventSink()
        self.settings = settings
        self._owned: list[Executor] = []
        if cpu_executor is None:
            cpu_executor = ThreadPoolExecutor(
                max_workers=default_cpu_workers(), thread_name_prefix="dbg-cpu"
            )
            self._owned.append(cpu_executor)
        if io_executor is None:
            io_executor = ThreadPoolExecutor(
                max_workers=default_io_workers(), thread_name_prefix="dbg-io"
            )
            self._owned.append(io_executor)
        self.cpu_executor = cpu_executor
        self.io_executor = io_executor
        # submit() runs analyze() here so it never occupies a CPU or I/O worker.
        self._driver = ThreadPoolExecutor(max_workers=4, thread_name_prefix="dbg-run")

    def _emit(self, name: str, run_id: str, **fields: Any) -> None:
        self.events.emit(AnalysisEvent(name=name, run_id=run_id, fields=fields))

    # ── lifecycle ──────────────────────────────────────────────────

    def start(self, config: AnalysisConfig, mode: AnalysisMode = AnalysisMode.STATIC) -> str:
        run_id = self.run_store.create(config, mode)
        self._emit(RUN_STARTED, run_id, mode=mode.value, source=config.source)
        return run_id

    def get_run(self, run_id: str) -> AnalysisRun:
        run = self.run_store.load(run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    def analyze(self, run_id: str, config: AnalysisConfig) -> AnalysisReport:
        """Execute the full pipeline for *run_id* and return the report.

        Any failure marks the run FAILED, emits ``run_failed`` and re-raises.
        """
        started = time.perf_counter()
        run = self.get_run(run_id)
        try:
            if run.mode is AnalysisMode.DYNAMIC:
                raise PipelineError(
                    "Dynamic analysis is not supported", {"mode": run.mode.value}
                )
            run.mark_in_progress()
            self.run_store.save(run)

            results = self._analyze_files(run, config)
            report = aggregate(run, results)
            self._emit(
                DETECTION_FINISHED,
                run_id,
                issues=report.summary.total,
                files_analyzed=report.summary.files_analyzed,
                queries_analyzed=report.summary.queries_analyzed,
            )
            self._persist(run, report)
        except Exception as exc:
            self._mark_failed(run_id, exc)
            raise

        self._emit(
            RUN_COMPLETED,
            run_id,
            critical=report.summary.critical,
            total=report.summary.total,
            duration_ms=_ms(started),
        )
        return report

    def submit(self, run_id: str, config: AnalysisConfig) -> Future:
        """Run ``analyze`` on a background thread."""
        return self._driver.submit(self.analyze, run_id, config)

    def _mark_failed(self, run_id: str, exc: BaseException) -> None:
        # Reload: the local copy may be ahead of the store (e.g. a stale save).
        try:
            run = self.run_store.load(run_id)
            if run is not None and not run.is_terminal:
                run.fail()
                self.run_store.save(run)
        except Exception:
            _logger.exception("could not record failure for run %s", run_id)
        self._emit(RUN_FAILED, run_id, error=f"{type(exc).__name__}: {exc}")

    # ── pipeline stages ────────────────────────────────────────────

    def _analyze_files(self, run: AnalysisRun, config: AnalysisConfig) -> list[FileAnalysis]:
        source = Path(config.source)
        settings = self.settings or EngineSettings.discover(source)

        t0 = time.perf_counter()
        files = discover_files(config, settings)
        if not files:
            raise NoCandidateFilesError(config.source)
        self._emit(FILES_DISCOVERED, run.run_id, count=len(files), duration_ms=_ms(t0))

        analyzer = FileAnalyzer(config.dialect, settings, root=source)
        futures = [self.cpu_executor.submit(analyzer, c) for c in files]

        results: list[FileAnalysis] = []
        for future in futures:
            result = future.result()
            if result.skipped is not None:
                self._emit(FILE_SKIPPED, run.run_id, path=result.path, reason=result.skipped)
            else:
                self._emit(
                    FILE_ANALYZED,
                    run.run_id,
                    path=result.path,
                    fragments=result.accepted,
                    issues=len(result.issues),
                )
            results.append(result)
        return results

    def _persist(self, run: AnalysisRun, report: AnalysisReport) -> None:
        data = report.to_dict()
        validate_instance(data)
        written: list[ReportRef] = []

        def store_json(_: dict) -> ReportRef:
            ref = self.artifact_store.store(
                render_json(report).encode("utf-8"), JSON_CONTENT_TYPE, f"{run.run_id}.json"
            )
            written.append(ref)
            self._emit(REPORT_STORED, run.run_id, format="json", key=ref.key)
            return ref

        def store_markdown(_: dict) -> ReportRef:
            ref = self.artifact_store.store(
                render_markdown(report).encode("utf-8"),
                MARKDOWN_CONTENT_TYPE,
                f"{run.run_id}.md",
            )
            written.append(ref)
            self._emit(REPORT_STORED, run.run_id, format="markdown", key=ref.key)
            return ref

        def finalize_run(refs: dict[str, ReportRef]) -> None:
            run.complete(report.summary)
            run.attach_report(refs["store_json"], markdown=refs["store_markdown"])
            self.run_store.save(run)

        graph = TaskGraph()
        graph.add("store_json", store_json)
        graph.add("store_markdown", store_markdown)
        graph.add("finalize_run", finalize_run, after=("store_json", "store_markdown"))
        try:
            graph.run(self.io_executor)
        except Exception:
            self._discard(written)
            raise

    def _discard(self, refs: list[ReportRef]) -> None:
        # A failed run keeps no partial reports.
        for ref in refs:
            try:
                self.artifact_store.delete(ref)
            except Exception:
                _logger.exception("could not discard artifact %s", ref.key)

    # ── report access ──────────────────────────────────────────────

    def _report_ref(self, run_id: str, fmt: str) -> ReportRef:
        if fmt not in REPORT_FORMATS:
            raise ValueError(f"Unsupported report format: {fmt!r}")
        run = self.get_run(run_id)
        ref = run.report_ref if fmt == "json" else run.markdown_ref
        if ref is None:
            raise ReportNotAvailableError(run_id, run.status.value)
        return ref

    def report_url(
        self,
        run_id: str,
        fmt: str = "json",
        expires_in: timedelta = DEFAULT_URL_TTL,
    ) -> str:
        return self.artifact_store.access_url(self._report_ref(run_id, fmt), expires_in)

    def get_report(self, run_id: str) -> dict[str, Any]:
        raw = self.artifact_store.read(self._report_ref(run_id, "json"))
        return json.loads(raw.decode("utf-8"))

    # ── shutdown ───────────────────────────────────────────────────

    def close(self) -> None:
        self._driver.shutdown(wait=True)
        for executor in self._owned:
            executor.shutdown(wait=True)

    def __enter__(self) -> "AnalysisService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
