"""Structured run events.

The pipeline reports progress through an ``EventSink`` handed to the
orchestrator rather than through a module-level logger, so embedders decide
where progress goes.  ``LoggingEventSink`` is the default and forwards to
the standard ``logging`` tree.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

# Event names.
RUN_STARTED = "run_started"
FILES_DISCOVERED = "files_discovered"
FILE_SKIPPED = "file_skipped"
FILE_ANALYZED = "file_analyzed"
DETECTION_FINISHED = "detection_finished"
REPORT_STORED = "report_stored"
RUN_COMPLETED = "run_completed"
RUN_FAILED = "run_failed"


@dataclass(frozen=True)
class AnalysisEvent:
    """A single progress or outcome event for one run."""

    name: str
    run_id: str
    fields: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "run_id": self.run_id,
            "timestamp": self.timestamp.isoformat(),
            "fields": dict(self.fields),
        }


class EventSink(Protocol):
    def emit(self, event: AnalysisEvent) -> None:
        ...


class NullEventSink:
    def emit(self, event: AnalysisEvent) -> None:
        return None


class LoggingEventSink:
    """Forward events to ``logging``; failures and skips log as warnings."""

    _WARN = frozenset({FILE_SKIPPED, RUN_FAILED})

    def __init__(self, logger: logging.Logger | None = None):
        self._logger = logger or logging.getLogger("db_guardian.events")

    def emit(self, event: AnalysisEvent) -> None:
        level = logging.WARNING if event.name in self._WARN else logging.INFO
        if event.name == FILE_ANALYZED:
            level = logging.DEBUG
        if not self._logger.isEnabledFor(level):
            return
        detail = " ".join(f"{k}={v}" for k, v in sorted(event.fields.items()))
        self._logger.log(level, "[%s] %s %s", event.run_id, event.name, detail)


class RecordingEventSink:
    """Keep every event in memory.  Thread-safe; used by tests and embedders."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[AnalysisEvent] = []

    def emit(self, event: AnalysisEvent) -> None:
        with self._lock:
            self._events.append(event)

    @property
    def events(self) -> list[AnalysisEvent]:
        with self._lock:
            return list(self._events)

    def names(self) -> list[str]:
        return [e.name for e in self.events]

    def of(self, name: str) -> list[AnalysisEvent]:
        return [e for e in self.events if e.name == name]
