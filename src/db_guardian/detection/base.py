"""Detector base class and shared helpers."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from pathlib import PurePosixPath
from typing import ClassVar

from db_guardian.model import Severity
from db_guardian.model.fragment import Fragment, SqlFragment, StructuralFragment
from db_guardian.model.issue import IssueLocation, ReportIssue, make_fingerprint

_TEST_DIRS = frozenset({"test", "tests", "__tests__", "testing"})
_TEST_STEM = re.compile(
    r"^test_|^Test[A-Z_]|[a-z0-9_](?:Test|Tests|Spec|IT)$|_(?:test|tests|spec)$|^conftest$"
)


def is_test_path(path: str) -> bool:
    """True for files that live in test code.

    A ``test``/``tests`` directory anywhere in the path, or a file name
    such as ``UserRepositoryTest.kt``, ``OrderSpec.groovy`` or
    ``test_orders.py``.
    """
    p = PurePosixPath(path.replace("\\", "/"))
    if any(part.lower() in _TEST_DIRS for part in p.parts[:-1]):
        return True
    return bool(_TEST_STEM.search(p.stem))


class Detector(ABC):
    """A single, stateless detection rule.

    Subclasses declare their technique metadata as class attributes and
    implement ``detect``.  ``fragment_type`` selects whether the rule sees
    validated SQL or structural fragments.
    """

    technique: ClassVar[str]
    severity: ClassVar[Severity]
    confidence: ClassVar[float]
    description: ClassVar[str]
    suggestion: ClassVar[str]
    fragment_type: ClassVar[type] = SqlFragment

    def __init__(self, *, suppress_in_tests: bool = True):
        self.suppress_in_tests = suppress_in_tests

    def applies_to(self, fragment: Fragment) -> bool:
        return isinstance(fragment, self.fragment_type)

    @abstractmethod
    def detect(self, fragment: Fragment) -> list[ReportIssue]:
        """Inspect one fragment and return zero or more issues."""
        ...

    def in_test_code(self, fragment: Fragment) -> bool:
        return self.suppress_in_tests and is_test_path(fragment.path)

    def _make_issue(
        self,
        fragment: Fragment,
        *,
        severity: Severity | None = None,
        confidence: float | None = None,
        description: str | None = None,
        suggestion: str | None = None,
    ) -> ReportIssue:
        """Create a ReportIssue located at *fragment*."""
        if isinstance(fragment, StructuralFragment):
            query_text = fragment.context
        else:
            query_text = fragment.text
        return ReportIssue(
            severity=severity or self.severity,
            technique=self.technique,
            description=description or self.description,
            suggestion=suggestion or self.suggestion,
            query_text=query_text,
            confidence=self.confidence if confidence is None else confidence,
            location=IssueLocation(
                file_path=fragment.path,
                start_line=fragment.line_start,
                end_line=fragment.line_end,
            ),
            fingerprint=make_fingerprint(
                self.technique, fragment.path, fragment.line_start, query_text
            ),
        )
