from __future__ import annotations

import asyncio
import logging

import pytest

from taskwave.config.schema import EngineDefaults, TaskDefinition
from taskwave.exec.events import EventEmitter, EventKind, RecordingObserver
from taskwave.exec.retry_handler import RetryHandler
from taskwave.state.model import TaskExecutionContext
from taskwave.util.errors import ConfigurationError, TaskTimeoutError
from taskwave.util.time import monotonic

FAST = EngineDefaults(base_delay_ms=1, max_delay_ms=5)


def _context(task_id: str = "t", *, start: float | None = None) -> TaskExecutionContext:
    return TaskExecutionContext(
        task_id=task_id,
        start_time=monotonic() if start is None else start,
        retry_count=0,
        max_retries=0,
        timeout_ms=2000,
    )


def _flaky(failures: int, message: str = "temporary glitch") -> tuple[list[int], object]:
    calls: list[int] = []

    async def handler() -> str:
        calls.append(len(calls) + 1)
        if len(calls) <= failures:
            raise RuntimeError(f"{message} #{len(calls)}")
        return "ok"

    return calls, handler


@pytest.mark.asyncio
async def test_execute_with_retry_succeeds_on_first_attempt() -> None:
    calls, handler = _flaky(0)
    task = TaskDefinition(id="t", handler=handler, retries=2)  # type: ignore[arg-type]
    outcome = await RetryHandler(defaults=FAST).execute_with_retry(task, _context())

    assert outcome.success is True
    assert outcome.retry_count == 0
    assert outcome.result.data == "ok"
    assert len(outcome.attempts) == 1
    assert outcome.attempts[0].success is True
    assert calls == [1]


@pytest.mark.asyncio
async def test_execute_with_retry_counts_failures_before_success() -> None:
    calls, handler = _flaky(2)
    task = TaskDefinition(id="t", handler=handler, retries=2)  # type: ignore[arg-type]
    context = _context()
    outcome = await RetryHandler(defaults=FAST).execute_with_retry(task, context)

    assert outcome.success is True
    assert outcome.retry_count == 2
    assert outcome.result.retry_count == 2
    assert [attempt.success for attempt in outcome.attempts] == [False, False, True]
    assert outcome.attempts[0].error_message == "temporary glitch #1"
    assert calls == [1, 2, 3]
    assert context.retry_count == 1


@pytest.mark.asyncio
async def test_execute_with_retry_gives_up_after_max_retries() -> None:
    calls, handler = _flaky(10)
    task = TaskDefinition(id="t", handler=handler, retries=2)  # type: ignore[arg-type]
    outcome = await RetryHandler(defaults=FAST).execute_with_retry(task, _context())

    assert outcome.success is False
    assert outcome.retry_count == 2
    assert len(outcome.attempts) == 3
    assert str(outcome.error) == "temporary glitch #3"
    assert outcome.result.error is outcome.error
    assert calls == [1, 2, 3]


@pytest.mark.asyncio
async def test_execute_with_retry_stops_on_non_retryable_error() -> None:
    calls, handler = _flaky(10, message="invalid payload")
    task = TaskDefinition(id="t", handler=handler, retries=3)  # type: ignore[arg-type]
    outcome = await RetryHandler(defaults=FAST).execute_with_retry(task, _context())

    assert outcome.success is False
    assert outcome.retry_count == 0
    assert len(outcome.attempts) == 1
    assert calls == [1]


@pytest.mark.asyncio
async def test_execute_with_retry_honours_task_retryable_patterns() -> None:
    calls, handler = _flaky(1, message="Task failed")
    task = TaskDefinition(
        id="t",
        handler=handler,  # type: ignore[arg-type]
        retries=1,
        retryable_errors=["Task failed"],
    )
    outcome = await RetryHandler(defaults=FAST).execute_with_retry(task, _context())
    assert outcome.success is True
    assert outcome.retry_count == 1


@pytest.mark.asyncio
async def test_execute_with_retry_honours_engine_retryable_patterns() -> None:
    calls, handler = _flaky(1, message="resource locked")
    task = TaskDefinition(id="t", handler=handler, retries=1)  # type: ignore[arg-type]
    defaults = EngineDefaults(base_delay_ms=1, retryable_errors=("locked",))
    outcome = await RetryHandler(defaults=defaults).execute_with_retry(task, _context())
    assert outcome.success is True
    assert calls == [1, 2]


@pytest.mark.asyncio
async def test_execute_with_retry_waits_backoff_sequence(monkeypatch: pytest.MonkeyPatch) -> None:
    waits: list[float] = []

    async def fake_delay(ms: float) -> None:
        waits.append(ms)

    monkeypatch.setattr("taskwave.exec.retry_handler.delay", fake_delay)
    _, handler = _flaky(10)
    task = TaskDefinition(id="t", handler=handler, retries=3)  # type: ignore[arg-type]
    await RetryHandler().execute_with_retry(task, _context())
    assert waits == [100, 200, 400]


@pytest.mark.asyncio
async def test_execute_with_retry_uses_linear_strategy(monkeypatch: pytest.MonkeyPatch) -> None:
    waits: list[float] = []

    async def fake_delay(ms: float) -> None:
        waits.append(ms)

    monkeypatch.setattr("taskwave.exec.retry_handler.delay", fake_delay)
    _, handler = _flaky(10)
    task = TaskDefinition(
        id="t", handler=handler, retries=3, retry_strategy="linear"  # type: ignore[arg-type]
    )
    await RetryHandler().execute_with_retry(task, _context())
    assert waits == [100, 200, 300]


@pytest.mark.asyncio
async def test_execute_with_retry_emits_retry_events_and_logs(
    caplog: pytest.LogCaptureFixture,
) -> None:
    recorder = RecordingObserver()
    logger = logging.getLogger("test.retry")
    handler_under_test = RetryHandler(EventEmitter([recorder]), defaults=FAST, logger=logger)
    _, handler = _flaky(2)
    task = TaskDefinition(id="t", handler=handler, retries=2)  # type: ignore[arg-type]

    with caplog.at_level(logging.WARNING, logger="test.retry"):
        await handler_under_test.execute_with_retry(task, _context(), workflow_id="wf-1")

    retries = recorder.of_kind(EventKind.TASK_RETRY)
    assert [event.payload["retry_count"] for event in retries] == [1, 2]
    assert retries[0].payload == {
        "task_id": "t",
        "workflow_id": "wf-1",
        "retry_count": 1,
        "error": "temporary glitch #1",
    }
    assert "[Workflow: wf-1] [Task: t] Retry 1/2: temporary glitch #1" in caplog.text


@pytest.mark.asyncio
async def test_execute_with_retry_prefers_task_workflow_id() -> None:
    recorder = RecordingObserver()
    _, handler = _flaky(1)
    task = TaskDefinition(
        id="t", handler=handler, retries=1, workflow_id="own"  # type: ignore[arg-type]
    )
    await RetryHandler(EventEmitter([recorder]), defaults=FAST).execute_with_retry(
        task, _context(), workflow_id="outer"
    )
    assert recorder.of_kind(EventKind.TASK_RETRY)[0].payload["workflow_id"] == "own"


@pytest.mark.asyncio
async def test_execute_with_retry_times_out_and_abandons_attempt() -> None:
    released = asyncio.Event()

    async def handler() -> str:
        await asyncio.sleep(0.3)
        released.set()
        return "too late"

    task = TaskDefinition(id="slow", handler=handler, timeout_ms=50)
    context = _context("slow")
    outcome = await RetryHandler(defaults=FAST).execute_with_retry(task, context)

    assert outcome.success is False
    assert isinstance(outcome.error, TaskTimeoutError)
    assert "timed out" in str(outcome.error)
    assert outcome.result.abandoned_attempts == 1
    assert context.abandoned_attempts == 1
    assert outcome.result.duration < 250
    await asyncio.wait_for(released.wait(), timeout=1.0)


@pytest.mark.asyncio
async def test_execute_with_retry_retries_timeouts() -> None:
    calls: list[int] = []

    async def handler() -> str:
        calls.append(1)
        if len(calls) == 1:
            await asyncio.sleep(0.2)
        return "second try"

    task = TaskDefinition(id="t", handler=handler, retries=1, timeout_ms=30)
    outcome = await RetryHandler(defaults=FAST).execute_with_retry(task, _context())
    assert outcome.success is True
    assert outcome.result.data == "second try"
    assert outcome.retry_count == 1
    assert outcome.result.abandoned_attempts == 1
    await asyncio.sleep(0.25)


@pytest.mark.asyncio
async def test_execute_with_retry_reports_invalid_configuration() -> None:
    calls, handler = _flaky(0)
    task = TaskDefinition(id="t", handler=handler)  # type: ignore[arg-type]
    defaults = EngineDefaults(base_delay_ms=0)
    outcome = await RetryHandler(defaults=defaults).execute_with_retry(task, _context())

    assert outcome.success is False
    assert isinstance(outcome.error, ConfigurationError)
    assert outcome.retry_count == 0
    assert outcome.attempts == []
    assert calls == []


@pytest.mark.asyncio
async def test_execute_with_retry_measures_duration_from_context_start() -> None:
    _, handler = _flaky(0)
    task = TaskDefinition(id="t", handler=handler)  # type: ignore[arg-type]
    outcome = await RetryHandler(defaults=FAST).execute_with_retry(
        task, _context(start=monotonic() - 1.0)
    )
    assert outcome.result.duration >= 1000
