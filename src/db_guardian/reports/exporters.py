"""Report exporters.

Supports:

*  **JSON** — machine-readable, mirrors the data model, issues in discovery
   order.  Validated against ``analysis_report.schema.json`` before storage.
*  **Markdown** — human-readable, issues grouped by severity then technique,
   followed by a per-issue detail section.

Both render from the same ``AnalysisReport`` and nothing else.
"""

from __future__ import annotations

from db_guardian.model import Severity
from db_guardian.model.issue import ReportIssue
from db_guardian.model.report import AnalysisReport
from db_guardian.utils.json_norm import stable_json_dumps

JSON_CONTENT_TYPE = "application/json"
MARKDOWN_CONTENT_TYPE = "text/markdown; charset=utf-8"

# ── severity sections (worst first) ─────────────────────────────────
_SEVERITY_SECTIONS = [
    (Severity.CRITICAL, "Critical Issues"),
    (Severity.WARNING, "Warnings"),
    (Severity.INFO, "Information"),
]


def _percent(confidence: float) -> int:
    return int(confidence * 100 + 1e-9)


# ════════════════════════════════════════════════════════════════════
# JSON exporter
# ════════════════════════════════════════════════════════════════════


def render_json(report: AnalysisReport, *, indent: int = 2) -> str:
    """Export an ``AnalysisReport`` as indented, key-sorted JSON."""
    return stable_json_dumps(report.to_dict(), indent=indent)


# ════════════════════════════════════════════════════════════════════
# Markdown exporter
# ════════════════════════════════════════════════════════════════════


def _location(issue: ReportIssue) -> str:
    if issue.location is None:
        return ""
    return f"{issue.location.file_path}:{issue.location.start_line}"


def _severity_section(lines: list[str], issues: list[ReportIssue], title: str) -> None:
    if not issues:
        return
    lines.append(f"## {title}")
    lines.append("")

    by_technique: dict[str, list[ReportIssue]] = {}
    for issue in issues:
        by_technique.setdefault(issue.technique, []).append(issue)

    for technique, group in by_technique.items():
        lines.append(f"### {technique}")
        lines.append("")
        lines.append(f"**Count:** {len(group)}  ")
        lines.append(f"**Description:** {group[0].description}")
        lines.append("")
        for issue in group:
            loc = _location(issue)
            entry = f"`{loc}`" if loc else "(no location)"
            if issue.confidence < 1.0:
                entry += f" ({_percent(issue.confidence)}% confidence)"
            lines.append(f"- {entry}")
        lines.append("")


def _issue_detail(lines: list[str], issue: ReportIssue, index: int) -> None:
    lines.append(f"### Issue #{index}")
    lines.append("")
    lines.append(f"**Severity:** {issue.severity.value}  ")
    lines.append(f"**Technique:** {issue.technique}  ")
    lines.append(f"**Description:** {issue.description}  ")
    lines.append(f"**Confidence:** {_percent(issue.confidence)}%  ")
    loc = _location(issue)
    if loc:
        lines.append(f"**Location:** `{loc}`")
    lines.append("")
    lines.append("**Query:**")
    lines.append("")
    lines.append("```sql")
    lines.append(issue.query_text.strip())
    lines.append("```")
    lines.append("")
    lines.append(f"**Suggestion:** {issue.suggestion}")
    lines.append("")
    lines.append("---")
    lines.append("")


def render_markdown(report: AnalysisReport) -> str:
    """Export an ``AnalysisReport`` as a Markdown document."""
    lines: list[str] = []
    summary = report.summary

    lines.append("# SQL Analysis Report")
    lines.append("")
    lines.append(f"**Analysis ID:** `{report.run_id}`  ")
    lines.append(f"**Mode:** {report.mode.value}  ")
    lines.append(f"**Status:** {report.status.value}  ")
    lines.append(f"**Started:** {report.started_at.isoformat()}  ")
    if report.completed_at is not None:
        lines.append(f"**Completed:** {report.completed_at.isoformat()}")
    lines.append("")

    lines.append("## Summary")
    lines.append("")
    lines.append(f"- **Total Issues:** {summary.total}")
    lines.append(f"- **Critical:** {summary.critical}")
    lines.append(f"- **Warnings:** {summary.warning}")
    lines.append(f"- **Info:** {summary.info}")
    lines.append(f"- **Files Analyzed:** {summary.files_analyzed}")
    lines.append(f"- **Queries Analyzed:** {summary.queries_analyzed}")
    lines.append("")

    if report.issues:
        for severity, title in _SEVERITY_SECTIONS:
            _severity_section(
                lines, [i for i in report.issues if i.severity is severity], title
            )

        lines.append("## Detailed Issues")
        lines.append("")
        for index, issue in enumerate(report.issues, 1):
            _issue_detail(lines, issue, index)
    else:
        lines.append("## No Issues Found")
        lines.append("")
        lines.append("No SQL issues were detected in the analyzed code.")
        lines.append("")
        lines.append("---")

    lines.append("*Report generated by Database Guardian*")
    lines.append("")
    return "\n".join(lines)
