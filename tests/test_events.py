from __future__ import annotations

import logging

import pytest

from taskwave.exec.events import (
    EngineEvent,
    EventEmitter,
    EventKind,
    LoggingObserver,
    RecordingObserver,
)


def test_emitter_delivers_to_observers_in_registration_order() -> None:
    calls: list[str] = []
    emitter = EventEmitter([lambda event: calls.append("first")])
    emitter.subscribe(lambda event: calls.append("second"))

    event = emitter.emit(EventKind.TASK_STARTED, task_id="a", workflow_id="w")
    assert calls == ["first", "second"]
    assert event.kind is EventKind.TASK_STARTED
    assert event.payload == {"task_id": "a", "workflow_id": "w"}
    assert event.timestamp > 0


def test_emitter_isolates_failing_observer(caplog: pytest.LogCaptureFixture) -> None:
    recorder = RecordingObserver()

    def broken(event: EngineEvent) -> None:
        raise RuntimeError("observer blew up")

    emitter = EventEmitter([broken, recorder], logger=logging.getLogger("test.events"))
    with caplog.at_level(logging.ERROR, logger="test.events"):
        emitter.emit(EventKind.WORKFLOW_STARTED, task_count=0, workflow_id="w")

    assert recorder.kinds() == [EventKind.WORKFLOW_STARTED]
    assert "event observer failed on WORKFLOW_STARTED" in caplog.text


def test_recording_observer_filters_by_kind() -> None:
    recorder = RecordingObserver()
    emitter = EventEmitter([recorder])
    emitter.emit(EventKind.TASK_STARTED, task_id="a")
    emitter.emit(EventKind.TASK_COMPLETED, task_id="a")
    emitter.emit(EventKind.TASK_STARTED, task_id="b")

    started = recorder.of_kind(EventKind.TASK_STARTED)
    assert [event.payload["task_id"] for event in started] == ["a", "b"]
    assert len(recorder.events) == 3


def test_event_kind_values_are_stable_strings() -> None:
    assert {kind.value for kind in EventKind} == {
        "WORKFLOW_STARTED",
        "WORKFLOW_COMPLETED",
        "WORKFLOW_FAILED",
        "TASK_STARTED",
        "TASK_COMPLETED",
        "TASK_FAILED",
        "TASK_RETRY",
    }


def test_logging_observer_writes_one_line_per_event(caplog: pytest.LogCaptureFixture) -> None:
    observer = LoggingObserver(logging.getLogger("test.listener"))
    emitter = EventEmitter([observer])
    with caplog.at_level(logging.INFO, logger="test.listener"):
        emitter.emit(EventKind.WORKFLOW_STARTED, task_count=3, workflow_id="w")
        emitter.emit(EventKind.TASK_RETRY, task_id="a", retry_count=1, error="temporary")
        emitter.emit(EventKind.TASK_FAILED, task_id="a", error="boom", retry_count=2)
        emitter.emit(EventKind.WORKFLOW_FAILED, duration=12.5, errors=["boom"])

    assert "WORKFLOW_STARTED - Task count: 3" in caplog.text
    assert "TASK_RETRY - Task ID: a, Retry Count: 1, Error: temporary" in caplog.text
    assert "TASK_FAILED - Task ID: a, Error: boom, Retry Count: 2" in caplog.text
    assert "WORKFLOW_FAILED - Duration: 12.5ms, Errors: 1" in caplog.text
    levels = {record.levelno for record in caplog.records}
    assert {logging.INFO, logging.WARNING, logging.ERROR} <= levels
