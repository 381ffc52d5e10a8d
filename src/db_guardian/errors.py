"""Exception hierarchy for db_guardian.

Parse misses inside the extractor and validator are *not* errors and never
surface here; everything below either aborts a run or rejects a caller's
input.
"""

from __future__ import annotations


class GuardianError(Exception):
    """Base exception for all db_guardian errors."""

    def __init__(self, message: str, details: dict[str, object] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(GuardianError):
    """Invalid analysis configuration or settings file."""


class InvalidTransitionError(GuardianError):
    """An AnalysisRun was asked to move to a status it cannot reach."""

    def __init__(self, run_id: str, current: str, target: str):
        super().__init__(
            f"Cannot transition run from {current} to {target}",
            {"run_id": run_id, "current": current, "target": target},
        )
        self.run_id = run_id
        self.current = current
        self.target = target


class RunNotFoundError(GuardianError):
    """No run record exists for the given id."""

    def __init__(self, run_id: str):
        super().__init__("Analysis run not found", {"run_id": run_id})
        self.run_id = run_id


class PipelineError(GuardianError):
    """A pipeline-level failure that aborts the run."""


class NoCandidateFilesError(PipelineError):
    """Discovery produced no files to analyze."""

    def __init__(self, source: str):
        super().__init__("No candidate files found", {"source": source})
        self.source = source


class StorageError(GuardianError):
    """Persisting a report or run record failed."""


class StaleRunError(StorageError):
    """Optimistic save rejected because the stored version moved on."""

    def __init__(self, run_id: str, expected: int, actual: int):
        super().__init__(
            "Run record was modified concurrently",
            {"run_id": run_id, "expected_version": expected, "actual_version": actual},
        )
        self.run_id = run_id
        self.expected = expected
        self.actual = actual


class ReportNotAvailableError(GuardianError):
    """The run exists but has no stored report (not completed, or failed)."""

    def __init__(self, run_id: str, status: str):
        super().__init__("Report not available", {"run_id": run_id, "status": status})
        self.run_id = run_id
        self.status = status
