from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Literal

RetryStrategy = Literal["exponential", "linear", "jitter"]
RETRY_STRATEGIES: tuple[str, ...] = ("exponential", "linear", "jitter")

# Zero-argument callable returning an awaitable (or a plain value).
Handler = Callable[[], Any]

DEFAULT_TIMEOUT_MS = 2000
DEFAULT_RETRIES = 0
DEFAULT_BASE_DELAY_MS = 100
DEFAULT_MAX_DELAY_MS = 30000

_SEQUENCE_TYPES = (list, tuple, set, frozenset)


@dataclass(frozen=True, slots=True)
class TaskDefinition:
    """A unit of work and its execution policy.

    ``retries``, ``timeout_ms`` and ``retry_strategy`` left as ``None`` are
    resolved from :class:`EngineDefaults` when the task is dispatched.
    """

    id: str
    handler: Handler
    dependencies: tuple[str, ...] = ()
    retries: int | None = None
    timeout_ms: int | None = None
    retry_strategy: RetryStrategy | None = None
    retryable_errors: tuple[str, ...] = ()
    description: str | None = None
    workflow_id: str | None = None

    def __post_init__(self) -> None:
        # Sequences are frozen; anything else is left for validate_task to reject.
        if isinstance(self.dependencies, _SEQUENCE_TYPES):
            object.__setattr__(self, "dependencies", tuple(self.dependencies))
        if isinstance(self.retryable_errors, _SEQUENCE_TYPES):
            object.__setattr__(self, "retryable_errors", tuple(self.retryable_errors))


@dataclass(frozen=True, slots=True)
class EngineDefaults:
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    retries: int = DEFAULT_RETRIES
    base_delay_ms: float = DEFAULT_BASE_DELAY_MS
    max_delay_ms: float = DEFAULT_MAX_DELAY_MS
    retryable_errors: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, object]:
        return {
            "timeout_ms": self.timeout_ms,
            "retries": self.retries,
            "base_delay_ms": self.base_delay_ms,
            "max_delay_ms": self.max_delay_ms,
            "retryable_errors": list(self.retryable_errors),
        }


@dataclass(slots=True)
class WorkflowSpec:
    name: str | None
    defaults: EngineDefaults
    tasks: list[TaskDefinition]
