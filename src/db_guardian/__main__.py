"""CLI entry-point for db_guardian.

Usage:
    python -m db_guardian scan <path> [--dialect D] [--migrations P ...]
                                      [--schema P] [--code P] [--out DIR]
                                      [--format text|json|markdown]
                                      [--production-only] [--verbose]
    python -m db_guardian validate <report.json>

Exit codes: 0 = no critical issues, 1 = critical issues (or an invalid
report for ``validate``), 2 = error.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

import jsonschema

from db_guardian import __version__
from db_guardian.api import scan_project
from db_guardian.contracts.load import validate_file
from db_guardian.core.config import EngineSettings
from db_guardian.errors import GuardianError
from db_guardian.model import Severity
from db_guardian.model.report import AnalysisReport
from db_guardian.reports.exporters import render_json, render_markdown
from db_guardian.utils.exit_codes import ExitCode

_SEVERITY_MARK = {
    Severity.CRITICAL: "[CRIT]",
    Severity.WARNING: "[WARN]",
    Severity.INFO: "[INFO]",
}


def _print_human(report: AnalysisReport) -> None:
    """Pretty-print a human-readable summary to stderr."""
    summary = report.summary
    print(
        f"\n   Files    : {summary.files_analyzed}  "
        f"Queries: {summary.queries_analyzed}",
        file=sys.stderr,
    )
    print(f"   Issues   : {summary.total}", file=sys.stderr)
    parts = [
        f"{name}={count}"
        for name, count in (
            ("critical", summary.critical),
            ("warning", summary.warning),
            ("info", summary.info),
        )
        if count
    ]
    if parts:
        print(f"   Severity : {', '.join(parts)}", file=sys.stderr)

    critical = [i for i in report.issues if i.severity is Severity.CRITICAL]
    if critical:
        print(f"\n   {len(critical)} critical issue(s), fix before shipping:", file=sys.stderr)
        for issue in critical[:5]:
            loc = issue.location
            where = f"{loc.file_path}:{loc.start_line}" if loc else "?"
            print(f"      - {issue.technique} -> {where}", file=sys.stderr)
        if len(critical) > 5:
            print(f"      ... and {len(critical) - 5} more", file=sys.stderr)

    print("", file=sys.stderr)


def _render_text(report: AnalysisReport) -> str:
    lines = []
    for issue in report.issues:
        loc = issue.location
        where = f"{loc.file_path}:{loc.start_line}" if loc else "-"
        lines.append(
            f"{_SEVERITY_MARK[issue.severity]} {issue.technique} {where} {issue.description}"
        )
    return "\n".join(lines) + ("\n" if lines else "")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="db-guardian",
        description="Detect database anti-patterns in SQL files and ORM code.",
    )
    p.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    sub = p.add_subparsers(dest="command")

    # ── scan subcommand ──────────────────────────────────────────────
    scan_p = sub.add_parser("scan", help="Analyze a source tree.")
    scan_p.add_argument("path", type=Path, help="Source root (directory or single file).")
    scan_p.add_argument(
        "--dialect",
        default=None,
        help="SQL dialect (default: from settings file, else postgres).",
    )
    scan_p.add_argument(
        "--migrations",
        dest="migrations",
        nargs="+",
        default=[],
        metavar="PATH",
        help="Additional migration directories (SQL and code files only).",
    )
    scan_p.add_argument("--schema", default=None, metavar="PATH", help="Schema file or directory.")
    scan_p.add_argument("--code", default=None, metavar="PATH", help="Additional code directory.")
    scan_p.add_argument(
        "--production-only",
        "-p",
        action="store_true",
        default=False,
        help="Skip test files (test directories, *Test.kt, test_*.py, ...).",
    )
    scan_p.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Settings YAML (default: .db-guardian.yaml in the source root).",
    )
    scan_p.add_argument(
        "--out",
        type=Path,
        default=None,
        help="Directory to write analysis_report.json and analysis_report.md into.",
    )
    scan_p.add_argument(
        "--format",
        choices=("text", "json", "markdown"),
        default="text",
        help="What to print on stdout.",
    )
    scan_p.add_argument("--verbose", "-v", action="store_true", default=False)

    # ── validate subcommand ──────────────────────────────────────────
    val_p = sub.add_parser(
        "validate",
        help="Validate a JSON report against the bundled report schema.",
    )
    val_p.add_argument("instance", type=Path, help="Path to the JSON report.")

    return p


def _handle_scan(args: argparse.Namespace) -> int:
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        settings = (
            EngineSettings.load(args.config)
            if args.config is not None
            else EngineSettings.discover(args.path)
        )
        report = scan_project(
            args.path,
            dialect=args.dialect,
            migration_paths=args.migrations,
            schema_path=args.schema,
            code_path=args.code,
            settings=settings,
            production_only=args.production_only,
        )
    except GuardianError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return ExitCode.ERROR

    if args.out is not None:
        try:
            args.out.mkdir(parents=True, exist_ok=True)
            (args.out / "analysis_report.json").write_text(
                render_json(report), encoding="utf-8"
            )
            (args.out / "analysis_report.md").write_text(
                render_markdown(report), encoding="utf-8"
            )
        except OSError as e:
            print(f"ERROR: cannot write reports: {e}", file=sys.stderr)
            return ExitCode.ERROR

    if args.format == "json":
        sys.stdout.write(render_json(report))
    elif args.format == "markdown":
        sys.stdout.write(render_markdown(report))
    else:
        sys.stdout.write(_render_text(report))
        _print_human(report)

    return ExitCode.VIOLATION if report.summary.critical else ExitCode.SUCCESS


def _handle_validate(args: argparse.Namespace) -> int:
    # Exit code contract:
    #   1 = schema violation
    #   2 = unreadable file / not JSON
    try:
        validate_file(args.instance)
    except jsonschema.ValidationError as e:
        print(f"FAIL: {e.message}", file=sys.stderr)
        return ExitCode.VIOLATION
    except json.JSONDecodeError as e:
        print(f"ERROR: {args.instance}: not valid JSON: {e}", file=sys.stderr)
        return ExitCode.ERROR
    except ValueError as e:
        print(f"FAIL: {e}", file=sys.stderr)
        return ExitCode.VIOLATION
    except OSError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return ExitCode.ERROR
    print("OK")
    return ExitCode.SUCCESS


def main(argv: list[str] | None = None) -> int:
    """Entry-point; returns an exit code (0 = clean, 1 = critical, 2 = error)."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "scan":
        return _handle_scan(args)
    if args.command == "validate":
        return _handle_validate(args)

    parser.print_help(sys.stderr)
    return ExitCode.ERROR


if __name__ == "__main__":
    sys.exit(main())
