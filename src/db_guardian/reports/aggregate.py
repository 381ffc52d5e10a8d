"""Report aggregation: fan-in of per-file results into one AnalysisReport."""

from __future__ import annotations

from collections import Counter
from datetime import datetime
from typing import Iterable, Sequence

from db_guardian.core.runner import FileAnalysis
from db_guardian.model import AnalysisStatus
from db_guardian.model.issue import ReportIssue, make_issue_id
from db_guardian.model.report import AnalysisReport
from db_guardian.model.run import AnalysisRun, AnalysisSummary, utc_now


def assign_ids(issues: Iterable[ReportIssue]) -> list[ReportIssue]:
    """Give each issue a stable id derived from its fingerprint.

    Identical fingerprints are disambiguated by their occurrence order, so
    the same input always yields the same ids.
    """
    seen: Counter[str] = Counter()
    out: list[ReportIssue] = []
    for issue in issues:
        occurrence = seen[issue.fingerprint]
        seen[issue.fingerprint] += 1
        out.append(issue.with_id(make_issue_id(issue.fingerprint, occurrence)))
    return out


def summarize(results: Sequence[FileAnalysis], issues: Sequence[ReportIssue]) -> AnalysisSummary:
    return AnalysisSummary.from_issues(
        issues,
        files_analyzed=sum(1 for r in results if r.accepted > 0),
        queries_analyzed=sum(r.accepted for r in results),
    )


def aggregate(
    run: AnalysisRun,
    results: Sequence[FileAnalysis],
    *,
    completed_at: datetime | None = None,
) -> AnalysisReport:
    """Build the report for *run* from per-file results.

    *results* must already be in discovery order; issue order follows it.
    """
    issues = assign_ids(issue for result in results for issue in result.issues)
    return AnalysisReport(
        run_id=run.run_id,
        mode=run.mode,
        status=AnalysisStatus.COMPLETED,
        started_at=run.started_at,
        completed_at=completed_at or utc_now(),
        summary=summarize(results, issues),
        issues=tuple(issues),
    )
