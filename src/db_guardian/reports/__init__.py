"""Reports: aggregation of per-file results and JSON/Markdown rendering."""

from db_guardian.reports.aggregate import aggregate
from db_guardian.reports.exporters import render_json, render_markdown

__all__ = [
    "aggregate",
    "render_json",
    "render_markdown",
]
