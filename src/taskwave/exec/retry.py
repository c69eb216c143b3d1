from __future__ import annotations

import asyncio
import random
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from taskwave.config.schema import EngineDefaults, RetryStrategy, TaskDefinition
from taskwave.util.errors import ConfigurationError

DEFAULT_RETRYABLE_ERRORS: tuple[str, ...] = (
    "timeout",
    "timed out",
    "network",
    "connection",
    "temporary",
    "rate limit",
    "server error",
)


@dataclass(frozen=True, slots=True)
class RetryConfig:
    max_retries: int
    timeout_ms: int
    base_delay_ms: float
    strategy: RetryStrategy = "exponential"
    max_delay_ms: float = 30000
    retryable_errors: tuple[str, ...] = ()


async def delay(ms: float) -> None:
    """Suspend the caller for ``ms`` milliseconds without blocking the loop."""
    await asyncio.sleep(max(ms, 0) / 1000.0)


def calculate_retry_delay(
    attempt: int,
    config: RetryConfig,
    *,
    rand: Callable[[], float] = random.random,
) -> float:
    """
    Return backoff milliseconds before retry number ``attempt``.

    attempt is one-based: 1 means the wait after the first failure.
    """
    exponential = config.base_delay_ms * 2 ** (attempt - 1)
    if config.strategy == "linear":
        value = config.base_delay_ms * attempt
    elif config.strategy == "jitter":
        value = exponential + rand() * 0.1 * exponential
    else:
        value = exponential
    return float(min(value, config.max_delay_ms))


def should_retry(error: BaseException, retryable: Iterable[str] = ()) -> bool:
    message = str(error).lower()
    patterns = (*DEFAULT_RETRYABLE_ERRORS, *retryable)
    return any(pattern.lower() in message for pattern in patterns if pattern)


def create_retry_config(
    task: TaskDefinition, defaults: EngineDefaults | None = None
) -> RetryConfig:
    resolved = defaults or EngineDefaults()
    return RetryConfig(
        max_retries=resolved.retries if task.retries is None else task.retries,
        timeout_ms=resolved.timeout_ms if task.timeout_ms is None else task.timeout_ms,
        base_delay_ms=resolved.base_delay_ms,
        strategy=task.retry_strategy or "exponential",
        max_delay_ms=resolved.max_delay_ms,
        retryable_errors=(*resolved.retryable_errors, *task.retryable_errors),
    )


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_retry_config(config: RetryConfig) -> None:
    if not isinstance(config.max_retries, int) or isinstance(config.max_retries, bool):
        raise ConfigurationError("max_retries must be a non-negative integer")
    if config.max_retries < 0:
        raise ConfigurationError("max_retries must be a non-negative integer")
    if not _is_number(config.timeout_ms) or config.timeout_ms <= 0:
        raise ConfigurationError("timeout_ms must be a positive integer")
    if not _is_number(config.base_delay_ms) or config.base_delay_ms <= 0:
        raise ConfigurationError("base_delay_ms must be a positive number")
    if not _is_number(config.max_delay_ms) or config.max_delay_ms <= 0:
        raise ConfigurationError("max_delay_ms must be a positive number")
