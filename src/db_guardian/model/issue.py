"""ReportIssue: one detected problem in one fragment."""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, replace

from db_guardian.model import Severity

# Namespace for deterministic issue ids.
_ISSUE_NAMESPACE = uuid.UUID("6f1c1d2e-5b0a-4c1e-9a57-3d2f0e8b4a11")


@dataclass(frozen=True, slots=True)
class IssueLocation:
    """Source location of the offending fragment."""

    file_path: str
    start_line: int
    end_line: int
    column: int | None = None

    def to_dict(self) -> dict:
        d: dict = {
            "file_path": self.file_path,
            "start_line": self.start_line,
            "end_line": self.end_line,
        }
        if self.column is not None:
            d["column"] = self.column
        return d


@dataclass(frozen=True, slots=True)
class ReportIssue:
    """Immutable issue emitted by a detector.

    ``id`` is left empty by detectors and assigned during aggregation, once
    the position of the issue in the report is known.
    """

    severity: Severity
    technique: str
    description: str
    suggestion: str
    query_text: str
    confidence: float          # 0.0 – 1.0
    location: IssueLocation | None = None
    fingerprint: str = ""
    id: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    def with_id(self, issue_id: str) -> "ReportIssue":
        return replace(self, id=issue_id)

    def with_confidence(self, confidence: float) -> "ReportIssue":
        return replace(self, confidence=confidence)

    # ── serialisation ───────────────────────────────────────────────

    def to_dict(self) -> dict:
        d: dict = {
            "id": self.id,
            "severity": self.severity.value,
            "technique": self.technique,
            "description": self.description,
            "suggestion": self.suggestion,
            "query_text": self.query_text,
            "confidence": self.confidence,
            "fingerprint": self.fingerprint,
        }
        if self.location is not None:
            d["location"] = self.location.to_dict()
        return d


def make_fingerprint(
    technique: str,
    rel_path: str,
    line: int,
    snippet: str,
) -> str:
    """Deterministic issue fingerprint: sha256(technique|path|line|snippet)."""
    # Normalize path separators for cross-platform stability
    rel_path = rel_path.replace("\\", "/")
    payload = "|".join([technique, rel_path, str(line), snippet.strip()])
    return "sha256:" + hashlib.sha256(payload.encode()).hexdigest()


def make_issue_id(fingerprint: str, occurrence: int) -> str:
    """Stable uuid for the *occurrence*-th issue sharing *fingerprint*."""
    return str(uuid.uuid5(_ISSUE_NAMESPACE, f"{fingerprint}#{occurrence}"))
