"""Lifecycle events and the observers that receive them."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventKind(str, Enum):
    WORKFLOW_STARTED = "WORKFLOW_STARTED"
    WORKFLOW_COMPLETED = "WORKFLOW_COMPLETED"
    WORKFLOW_FAILED = "WORKFLOW_FAILED"
    TASK_STARTED = "TASK_STARTED"
    TASK_COMPLETED = "TASK_COMPLETED"
    TASK_FAILED = "TASK_FAILED"
    TASK_RETRY = "TASK_RETRY"


@dataclass(frozen=True, slots=True)
class EngineEvent:
    kind: EventKind
    payload: dict[str, Any]
    timestamp: float = field(default_factory=time.time)


Observer = Callable[[EngineEvent], None]


class EventEmitter:
    """Synchronous, best-effort fan-out to observers in registration order."""

    def __init__(
        self, observers: Iterable[Observer] = (), *, logger: logging.Logger | None = None
    ) -> None:
        self._observers = list(observers)
        self._logger = logger or logging.getLogger(__name__)

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def emit(self, kind: EventKind, **payload: Any) -> EngineEvent:
        event = EngineEvent(kind=kind, payload=payload)
        for observer in self._observers:
            try:
                observer(event)
            except Exception:
                self._logger.exception("event observer failed on %s", kind.value)
        return event


class RecordingObserver:
    """Keeps every event it receives; handy for tests and JSON output."""

    def __init__(self) -> None:
        self.events: list[EngineEvent] = []

    def __call__(self, event: EngineEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[EventKind]:
        return [event.kind for event in self.events]

    def of_kind(self, kind: EventKind) -> list[EngineEvent]:
        return [event for event in self.events if event.kind == kind]


class LoggingObserver:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("taskwave.events")

    def __call__(self, event: EngineEvent) -> None:
        p = event.payload
        kind = event.kind
        if kind == EventKind.WORKFLOW_STARTED:
            self._logger.info("WORKFLOW_STARTED - Task count: %s", p.get("task_count"))
        elif kind == EventKind.WORKFLOW_COMPLETED:
            self._logger.info("WORKFLOW_COMPLETED - Duration: %sms", p.get("duration"))
        elif kind == EventKind.WORKFLOW_FAILED:
            errors = p.get("errors")
            count = len(errors) if errors is not None else 1
            self._logger.error(
                "WORKFLOW_FAILED - Duration: %sms, Errors: %s", p.get("duration"), count
            )
        elif kind == EventKind.TASK_STARTED:
            self._logger.info("TASK_STARTED - Task ID: %s", p.get("task_id"))
        elif kind == EventKind.TASK_COMPLETED:
            self._logger.info(
                "TASK_COMPLETED - Task ID: %s, Duration: %sms", p.get("task_id"), p.get("duration")
            )
        elif kind == EventKind.TASK_FAILED:
            self._logger.error(
                "TASK_FAILED - Task ID: %s, Error: %s, Retry Count: %s",
                p.get("task_id"),
                p.get("error"),
                p.get("retry_count"),
            )
        elif kind == EventKind.TASK_RETRY:
            self._logger.warning(
                "TASK_RETRY - Task ID: %s, Retry Count: %s, Error: %s",
                p.get("task_id"),
                p.get("retry_count"),
                p.get("error"),
            )
