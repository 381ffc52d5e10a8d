"""AnalysisReport: the aggregate output of one run."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from db_guardian.model import AnalysisMode, AnalysisStatus
from db_guardian.model.issue import ReportIssue
from db_guardian.model.run import AnalysisSummary

REPORT_SCHEMA_VERSION = "analysis_report_v1"


@dataclass(frozen=True, slots=True)
class AnalysisReport:
    """Built once per run and then serialized to JSON and Markdown.

    Corresponds to ``analysis_report.schema.json``.
    """

    run_id: str
    mode: AnalysisMode
    status: AnalysisStatus
    started_at: datetime
    completed_at: datetime | None
    summary: AnalysisSummary
    issues: tuple[ReportIssue, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": REPORT_SCHEMA_VERSION,
            "run_id": self.run_id,
            "mode": self.mode.value,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "completed_at": (
                self.completed_at.isoformat() if self.completed_at else None
            ),
            "summary": self.summary.to_dict(),
            "issues": [issue.to_dict() for issue in self.issues],
        }
