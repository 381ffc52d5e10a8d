"""DetectionEngine: registry of detectors and the single detection entry point."""

from __future__ import annotations

from typing import ClassVar, Iterable

from db_guardian.core.config import EngineSettings
from db_guardian.core.validate import SqlValidator
from db_guardian.detection.base import Detector
from db_guardian.detection.sql_rules import SQL_DETECTORS
from db_guardian.detection.structural_rules import STRUCTURAL_DETECTORS
from db_guardian.model.fragment import Candidate, Fragment, SqlFragment
from db_guardian.model.issue import ReportIssue


class DetectionEngine:
    """Runs every registered detector that applies to a fragment.

    Detectors are independent and stateless, so order only affects the
    order issues appear in; registration order is kept for determinism.
    """

    # Registry of built-in detectors, keyed by technique.
    _BUILTIN_DETECTORS: ClassVar[dict[str, type[Detector]]] = {
        cls.technique: cls for cls in SQL_DETECTORS + STRUCTURAL_DETECTORS
    }

    def __init__(self, settings: EngineSettings | None = None):
        self.settings = settings or EngineSettings()
        self._detectors: dict[str, Detector] = {}
        for technique, detector_class in self._BUILTIN_DETECTORS.items():
            if technique in self.settings.disabled_techniques:
                continue
            self._detectors[technique] = detector_class(
                suppress_in_tests=self.settings.suppress_in_tests
            )

    @classmethod
    def builtin_techniques(cls) -> list[str]:
        return sorted(cls._BUILTIN_DETECTORS)

    # ── registry ───────────────────────────────────────────────────

    def register(self, detector: Detector) -> None:
        """Add or replace the detector for ``detector.technique``."""
        self._detectors[detector.technique] = detector

    def unregister(self, technique: str) -> None:
        self._detectors.pop(technique, None)

    @property
    def detectors(self) -> list[Detector]:
        return list(self._detectors.values())

    # ── detection ──────────────────────────────────────────────────

    def detect(self, fragment: Fragment) -> list[ReportIssue]:
        """All issues for one fragment, with configured confidence overrides."""
        overrides = self.settings.confidence_overrides
        issues: list[ReportIssue] = []
        for detector in self._detectors.values():
            if not detector.applies_to(fragment):
                continue
            for issue in detector.detect(fragment):
                if issue.technique in overrides:
                    issue = issue.with_confidence(overrides[issue.technique])
                issues.append(issue)
        return issues

    def detect_all(self, fragments: Iterable[Fragment]) -> list[ReportIssue]:
        issues: list[ReportIssue] = []
        for fragment in fragments:
            issues.extend(self.detect(fragment))
        return issues

    def analyze_text(
        self,
        text: str,
        path: str = "query.sql",
        *,
        dialect: str | None = None,
    ) -> list[ReportIssue]:
        """Validate *text* as one SQL statement and run the SQL detectors on it.

        Returns an empty list when the text does not parse.
        """
        validator = SqlValidator(dialect if dialect is not None else self.settings.dialect)
        candidate = Candidate(text=text, line_start=1, line_end=text.count("\n") + 1, origin=text)
        parsed = validator.validate(candidate.text)
        if parsed is None:
            return []
        fragment = SqlFragment(
            path=path,
            text=parsed.text,
            line_start=candidate.line_start,
            line_end=candidate.line_end,
            parsed=parsed,
            origin=candidate.origin,
        )
        return self.detect(fragment)
