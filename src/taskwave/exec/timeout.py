from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

from taskwave.config.schema import Handler
from taskwave.util.errors import TaskCancelledError, TaskTimeoutError

logger = logging.getLogger(__name__)

# Strong references to abandoned invocations until they settle.
_ABANDONED: set[asyncio.Future[Any]] = set()


async def _invoke(handler: Handler) -> Any:
    value = handler()
    if inspect.isawaitable(value):
        return await value
    return value


def _discard_outcome(task_id: str) -> Callable[[asyncio.Future[Any]], None]:
    def _callback(fut: asyncio.Future[Any]) -> None:
        if fut.cancelled():
            logger.debug("abandoned attempt of %s was cancelled", task_id)
            return
        exc = fut.exception()
        if exc is not None:
            logger.debug("abandoned attempt of %s failed late: %s", task_id, exc)
        else:
            logger.debug("abandoned attempt of %s finished late; result discarded", task_id)

    return _callback


def _outer_cancelling() -> bool:
    current = asyncio.current_task()
    return current is not None and current.cancelling() > 0


async def run_with_timeout(handler: Handler, timeout_ms: float, *, task_id: str) -> Any:
    """
    Race one handler invocation against a ``timeout_ms`` deadline.

    The losing invocation is abandoned, not cancelled: it keeps running and
    its eventual outcome is logged and dropped. A handler that cancels
    itself fails with TaskCancelledError; only a cancellation of the caller
    propagates as CancelledError.
    """
    fut = asyncio.ensure_future(_invoke(handler))
    try:
        done, _ = await asyncio.wait({fut}, timeout=timeout_ms / 1000.0)
    except asyncio.CancelledError:
        fut.cancel()
        raise
    if fut in done:
        if fut.cancelled() and not _outer_cancelling():
            raise TaskCancelledError(f"Task {task_id} was cancelled")
        return fut.result()
    _ABANDONED.add(fut)
    fut.add_done_callback(_ABANDONED.discard)
    fut.add_done_callback(_discard_outcome(task_id))
    raise TaskTimeoutError(f"Task {task_id} timed out after {timeout_ms}ms")
