from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def _error_text(error: BaseException | None) -> str | None:
    if error is None:
        return None
    return str(error) or type(error).__name__


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(key): _jsonable(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    return repr(value)


@dataclass(slots=True)
class TaskExecutionContext:
    task_id: str
    start_time: float
    retry_count: int
    max_retries: int
    timeout_ms: int
    abandoned_attempts: int = 0


@dataclass(slots=True)
class RetryAttempt:
    timestamp: float
    success: bool
    duration: float
    error_message: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "timestamp": self.timestamp,
            "success": self.success,
            "duration": self.duration,
            "error_message": self.error_message,
        }


@dataclass(slots=True)
class TaskResult:
    """Terminal outcome of one task.

    ``duration`` is wall time in milliseconds from dispatch, including every
    retry and backoff delay. ``retry_count`` is attempts made minus one.
    """

    id: str
    success: bool
    duration: float
    retry_count: int
    data: Any = None
    error: BaseException | None = None
    attempts: list[RetryAttempt] = field(default_factory=list)
    abandoned_attempts: int = 0
    started_at: float | None = None
    ended_at: float | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "success": self.success,
            "data": _jsonable(self.data),
            "error": _error_text(self.error),
            "duration": self.duration,
            "retry_count": self.retry_count,
            "abandoned_attempts": self.abandoned_attempts,
            "attempts": [attempt.to_dict() for attempt in self.attempts],
        }


@dataclass(slots=True)
class RetryResult:
    success: bool
    result: TaskResult
    retry_count: int
    error: BaseException | None = None
    attempts: list[RetryAttempt] = field(default_factory=list)


@dataclass(slots=True)
class WorkflowResult:
    """Terminal outcome of one run.

    ``results`` holds every task that was dispatched, succeeded or failed.
    Tasks never attempted (e.g. validation failed) have no entry.
    """

    workflow_id: str
    success: bool
    results: dict[str, TaskResult]
    duration: float
    errors: list[BaseException]

    @property
    def failed(self) -> list[str]:
        return [task_id for task_id, result in self.results.items() if not result.success]

    @property
    def abandoned(self) -> list[str]:
        return [
            task_id for task_id, result in self.results.items() if result.abandoned_attempts > 0
        ]

    def to_dict(self) -> dict[str, object]:
        return {
            "workflow_id": self.workflow_id,
            "success": self.success,
            "duration": self.duration,
            "errors": [_error_text(error) for error in self.errors],
            "results": {task_id: result.to_dict() for task_id, result in self.results.items()},
            "abandoned": self.abandoned,
        }
