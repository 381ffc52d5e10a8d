"""AnalysisRun: one execution of the pipeline and its lifecycle."""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterable

from db_guardian.errors import ConfigurationError, InvalidTransitionError
from db_guardian.model import AnalysisMode, AnalysisStatus, Severity

_TERMINAL = frozenset({AnalysisStatus.COMPLETED, AnalysisStatus.FAILED})

# Allowed source states for each target state.
_TRANSITIONS: dict[AnalysisStatus, frozenset[AnalysisStatus]] = {
    AnalysisStatus.IN_PROGRESS: frozenset({AnalysisStatus.STARTED}),
    AnalysisStatus.COMPLETED: frozenset(
        {AnalysisStatus.STARTED, AnalysisStatus.IN_PROGRESS}
    ),
    AnalysisStatus.FAILED: frozenset(
        {AnalysisStatus.STARTED, AnalysisStatus.IN_PROGRESS}
    ),
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _ts(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


# ── configuration ──────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class AnalysisConfig:
    """What to analyze: a dialect, a source root and optional extra paths."""

    dialect: str
    source: str
    migration_paths: tuple[str, ...] = ()
    schema_path: str | None = None
    code_path: str | None = None

    def __post_init__(self) -> None:
        if not self.dialect or not self.dialect.strip():
            raise ConfigurationError("Dialect cannot be blank")
        if not self.source or not self.source.strip():
            raise ConfigurationError("Source cannot be blank")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisConfig":
        """Build from a plain mapping.

        ``migration_paths`` may be a list or a JSON-array string.
        """
        raw = data.get("migration_paths") or ()
        if isinstance(raw, str):
            try:
                raw = json.loads(raw)
            except ValueError as exc:
                raise ConfigurationError(
                    "migration_paths is not a JSON array", {"value": raw}
                ) from exc
            if not isinstance(raw, list):
                raise ConfigurationError(
                    "migration_paths is not a JSON array", {"value": data["migration_paths"]}
                )
        return cls(
            dialect=str(data.get("dialect") or ""),
            source=str(data.get("source") or ""),
            migration_paths=tuple(str(p).strip() for p in raw if str(p).strip()),
            schema_path=data.get("schema_path") or None,
            code_path=data.get("code_path") or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "dialect": self.dialect,
            "source": self.source,
            "migration_paths": list(self.migration_paths),
            "schema_path": self.schema_path,
            "code_path": self.code_path,
        }


# ── summary ────────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class AnalysisSummary:
    """Issue and coverage counters.  ``total`` always equals the severity sum."""

    total: int = 0
    critical: int = 0
    warning: int = 0
    info: int = 0
    files_analyzed: int = 0
    queries_analyzed: int = 0

    def __post_init__(self) -> None:
        for name in (
            "total",
            "critical",
            "warning",
            "info",
            "files_analyzed",
            "queries_analyzed",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")
        if self.total != self.critical + self.warning + self.info:
            raise ValueError(
                "total must equal critical + warning + info "
                f"({self.total} != {self.critical} + {self.warning} + {self.info})"
            )

    @classmethod
    def from_issues(
        cls,
        issues: Iterable[Any],
        *,
        files_analyzed: int,
        queries_analyzed: int,
    ) -> "AnalysisSummary":
        counts = {sev: 0 for sev in Severity}
        for issue in issues:
            counts[issue.severity] += 1
        return cls(
            total=sum(counts.values()),
            critical=counts[Severity.CRITICAL],
            warning=counts[Severity.WARNING],
            info=counts[Severity.INFO],
            files_analyzed=files_analyzed,
            queries_analyzed=queries_analyzed,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "total_issues": self.total,
            "critical_issues": self.critical,
            "warning_issues": self.warning,
            "info_issues": self.info,
            "files_analyzed": self.files_analyzed,
            "queries_analyzed": self.queries_analyzed,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisSummary":
        return cls(
            total=int(data.get("total_issues", 0)),
            critical=int(data.get("critical_issues", 0)),
            warning=int(data.get("warning_issues", 0)),
            info=int(data.get("info_issues", 0)),
            files_analyzed=int(data.get("files_analyzed", 0)),
            queries_analyzed=int(data.get("queries_analyzed", 0)),
        )


@dataclass(frozen=True, slots=True)
class ReportRef:
    """Two-part handle to a stored report artifact."""

    container: str
    key: str

    def to_dict(self) -> dict[str, str]:
        return {"container": self.container, "key": self.key}


# ── run record ─────────────────────────────────────────────────────


@dataclass(slots=True)
class AnalysisRun:
    """Run record owned by the orchestrator for the lifetime of a run.

    Status only moves forward: STARTED -> IN_PROGRESS -> COMPLETED | FAILED,
    with IN_PROGRESS optional.  ``version`` is bumped by the run store on every
    save and used for optimistic single-writer updates.
    """

    config: AnalysisConfig
    mode: AnalysisMode = AnalysisMode.STATIC
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: AnalysisStatus = AnalysisStatus.STARTED
    started_at: datetime = field(default_factory=utc_now)
    completed_at: datetime | None = None
    summary: AnalysisSummary = field(default_factory=AnalysisSummary)
    report_ref: ReportRef | None = None
    markdown_ref: ReportRef | None = None
    version: int = 0

    # ── state machine ──────────────────────────────────────────────

    def _transition(self, target: AnalysisStatus) -> None:
        if self.status not in _TRANSITIONS[target]:
            raise InvalidTransitionError(self.run_id, self.status.value, target.value)
        self.status = target

    def mark_in_progress(self) -> None:
        self._transition(AnalysisStatus.IN_PROGRESS)

    def complete(self, summary: AnalysisSummary) -> None:
        self._transition(AnalysisStatus.COMPLETED)
        self.completed_at = utc_now()
        self.summary = summary

    def fail(self) -> None:
        self._transition(AnalysisStatus.FAILED)
        self.completed_at = utc_now()

    def attach_report(self, ref: ReportRef, markdown: ReportRef | None = None) -> None:
        if self.status is not AnalysisStatus.COMPLETED:
            raise InvalidTransitionError(
                self.run_id, self.status.value, "report attached"
            )
        if not ref.container.strip() or not ref.key.strip():
            raise ValueError("Report container and key cannot be blank")
        self.report_ref = ref
        self.markdown_ref = markdown

    @property
    def is_terminal(self) -> bool:
        return self.status in _TERMINAL

    @property
    def has_report(self) -> bool:
        return self.report_ref is not None

    def copy(self) -> "AnalysisRun":
        return replace(self)

    # ── serialisation ──────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "mode": self.mode.value,
            "status": self.status.value,
            "started_at": _ts(self.started_at),
            "completed_at": _ts(self.completed_at),
            "config": self.config.to_dict(),
            "summary": self.summary.to_dict(),
            "report_ref": self.report_ref.to_dict() if self.report_ref else None,
            "markdown_ref": self.markdown_ref.to_dict() if self.markdown_ref else None,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AnalysisRun":
        ref = data.get("report_ref")
        md_ref = data.get("markdown_ref")
        return cls(
            config=AnalysisConfig.from_dict(data["config"]),
            mode=AnalysisMode(data.get("mode", AnalysisMode.STATIC.value)),
            run_id=data["run_id"],
            status=AnalysisStatus(data["status"]),
            started_at=_parse_ts(data.get("started_at")) or utc_now(),
            completed_at=_parse_ts(data.get("completed_at")),
            summary=AnalysisSummary.from_dict(data.get("summary") or {}),
            report_ref=ReportRef(**ref) if ref else None,
            markdown_ref=ReportRef(**md_ref) if md_ref else None,
            version=int(data.get("version", 0)),
        )
