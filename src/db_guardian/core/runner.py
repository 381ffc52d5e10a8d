"""Per-file pipeline: read, extract, validate and detect for one file.

``FileAnalyzer`` instances are picklable so the orchestrator can fan work
out to either a thread or a process pool.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from db_guardian.core.config import EngineSettings
from db_guardian.core.discover import Classification
from db_guardian.core.extract import extract
from db_guardian.core.validate import SqlValidator
from db_guardian.detection.engine import DetectionEngine
from db_guardian.model import FileCategory
from db_guardian.model.fragment import Fragment, SqlFragment
from db_guardian.model.issue import ReportIssue


@dataclass(frozen=True, slots=True)
class FileAnalysis:
    """Outcome for one file.

    ``accepted`` counts fragments that reached the detectors: validated SQL
    plus structural markers.  ``skipped`` holds the read error when the file
    could not be analyzed at all.
    """

    path: str
    category: FileCategory
    accepted: int = 0
    issues: tuple[ReportIssue, ...] = ()
    skipped: str | None = None


def display_path(path: Path, root: Path | None) -> str:
    """*path* relative to *root* when it lives below it, else absolute."""
    if root is not None:
        base = root if root.is_dir() else root.parent
        try:
            return path.relative_to(base.resolve()).as_posix()
        except ValueError:
            pass
    return path.as_posix()


class FileAnalyzer:
    """Callable that turns a classified file into a ``FileAnalysis``."""

    def __init__(
        self,
        dialect: str | None,
        settings: EngineSettings | None = None,
        root: Path | None = None,
        engine: DetectionEngine | None = None,
    ):
        self.settings = settings or EngineSettings()
        self.validator = SqlValidator(dialect)
        self.engine = engine or DetectionEngine(self.settings)
        self.root = root.resolve() if root is not None else None

    def fragments(self, classification: Classification, content: str) -> list[Fragment]:
        """Accepted fragments for *content*, in line order."""
        path = display_path(classification.path, self.root)
        extraction = extract(classification.category, content, path)
        accepted: list[Fragment] = []
        for candidate in extraction.candidates:
            parsed = self.validator.validate(candidate.text)
            if parsed is None:
                continue
            accepted.append(
                SqlFragment(
                    path=path,
                    text=parsed.text,
                    line_start=candidate.line_start,
                    line_end=candidate.line_end,
                    parsed=parsed,
                    origin=candidate.origin,
                )
            )
        accepted.extend(extraction.structural)
        accepted.sort(key=lambda f: (f.line_start, f.line_end))
        return accepted

    def __call__(self, classification: Classification) -> FileAnalysis:
        path = display_path(classification.path, self.root)
        try:
            content = classification.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            return FileAnalysis(
                path=path,
                category=classification.category,
                skipped=f"{type(exc).__name__}: {exc}",
            )

        fragments = self.fragments(classification, content)
        return FileAnalysis(
            path=path,
            category=classification.category,
            accepted=len(fragments),
            issues=tuple(self.engine.detect_all(fragments)),
        )
