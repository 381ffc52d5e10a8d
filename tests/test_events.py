"""Tests for run events and sinks."""

from __future__ import annotations

import logging

from db_guardian.events import (
    FILE_ANALYZED,
    FILE_SKIPPED,
    RUN_STARTED,
    AnalysisEvent,
    LoggingEventSink,
    NullEventSink,
    RecordingEventSink,
)


def test_event_to_dict():
    event = AnalysisEvent(name=RUN_STARTED, run_id="r1", fields={"mode": "STATIC"})
    data = event.to_dict()
    assert data["name"] == RUN_STARTED
    assert data["run_id"] == "r1"
    assert data["fields"] == {"mode": "STATIC"}
    assert data["timestamp"].endswith("+00:00")


def test_recording_sink():
    sink = RecordingEventSink()
    sink.emit(AnalysisEvent(RUN_STARTED, "r1"))
    sink.emit(AnalysisEvent(FILE_ANALYZED, "r1", {"path": "a.sql"}))
    assert sink.names() == [RUN_STARTED, FILE_ANALYZED]
    assert sink.of(FILE_ANALYZED)[0].fields["path"] == "a.sql"


def test_null_sink_accepts_events():
    NullEventSink().emit(AnalysisEvent(RUN_STARTED, "r1"))


class TestLoggingEventSink:
    def test_levels(self, caplog):
        sink = LoggingEventSink()
        with caplog.at_level(logging.DEBUG, logger="db_guardian.events"):
            sink.emit(AnalysisEvent(RUN_STARTED, "r1", {"source": "/srv"}))
            sink.emit(AnalysisEvent(FILE_SKIPPED, "r1", {"path": "x.sql"}))
            sink.emit(AnalysisEvent(FILE_ANALYZED, "r1", {"path": "y.sql"}))
        levels = [(r.levelno, r.getMessage()) for r in caplog.records]
        assert levels == [
            (logging.INFO, "[r1] run_started source=/srv"),
            (logging.WARNING, "[r1] file_skipped path=x.sql"),
            (logging.DEBUG, "[r1] file_analyzed path=y.sql"),
        ]

    def test_disabled_level_is_skipped(self, caplog):
        sink = LoggingEventSink()
        with caplog.at_level(logging.WARNING, logger="db_guardian.events"):
            sink.emit(AnalysisEvent(RUN_STARTED, "r1"))
        assert caplog.records == []
