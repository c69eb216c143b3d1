from __future__ import annotations

import logging
import time

from taskwave.config.schema import EngineDefaults, TaskDefinition
from taskwave.exec.events import EventEmitter, EventKind
from taskwave.exec.retry import (
    RetryConfig,
    calculate_retry_delay,
    create_retry_config,
    delay,
    should_retry,
    validate_retry_config,
)
from taskwave.exec.timeout import run_with_timeout
from taskwave.state.model import RetryAttempt, RetryResult, TaskExecutionContext, TaskResult
from taskwave.util.errors import ConfigurationError, TaskTimeoutError
from taskwave.util.time import elapsed_ms, monotonic


class RetryHandler:
    """Runs one task to a terminal outcome: success, or retries exhausted.

    A timeout is just another failure and goes through the same retryable
    classification as any handler error.
    """

    def __init__(
        self,
        emitter: EventEmitter | None = None,
        *,
        defaults: EngineDefaults | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._emitter = emitter or EventEmitter()
        self._defaults = defaults or EngineDefaults()
        self._logger = logger or logging.getLogger(__name__)

    async def execute_with_retry(
        self,
        task: TaskDefinition,
        context: TaskExecutionContext,
        *,
        workflow_id: str = "unknown",
    ) -> RetryResult:
        config = create_retry_config(task, self._defaults)
        workflow_id = task.workflow_id or workflow_id
        try:
            validate_retry_config(config)
        except ConfigurationError as exc:
            self._logger.error(
                "[Workflow: %s] [Task: %s] Invalid retry configuration: %s",
                workflow_id,
                task.id,
                exc,
            )
            return self._failure(task, context, exc, attempts=[], attempts_made=1)

        attempts: list[RetryAttempt] = []
        attempts_made = 0
        last_error: Exception | None = None

        while attempts_made <= config.max_retries:
            attempt_start = monotonic()
            try:
                data = await run_with_timeout(task.handler, config.timeout_ms, task_id=task.id)
            except Exception as exc:
                last_error = exc
                attempts_made += 1
                context.retry_count = attempts_made - 1
                if isinstance(exc, TaskTimeoutError):
                    context.abandoned_attempts += 1
                attempts.append(
                    RetryAttempt(
                        timestamp=time.time(),
                        success=False,
                        duration=elapsed_ms(attempt_start),
                        error_message=str(exc),
                    )
                )
                if attempts_made <= config.max_retries and should_retry(
                    exc, config.retryable_errors
                ):
                    await self._handle_retry(task, attempts_made, config, exc, workflow_id)
                    continue
                break

            attempts.append(
                RetryAttempt(
                    timestamp=time.time(),
                    success=True,
                    duration=elapsed_ms(attempt_start),
                )
            )
            ended = monotonic()
            result = TaskResult(
                id=task.id,
                success=True,
                data=data,
                duration=elapsed_ms(context.start_time, ended),
                retry_count=attempts_made,
                attempts=attempts,
                abandoned_attempts=context.abandoned_attempts,
                started_at=context.start_time,
                ended_at=ended,
            )
            return RetryResult(
                success=True, result=result, retry_count=attempts_made, attempts=attempts
            )

        assert last_error is not None
        return self._failure(
            task, context, last_error, attempts=attempts, attempts_made=attempts_made
        )

    def _failure(
        self,
        task: TaskDefinition,
        context: TaskExecutionContext,
        error: Exception,
        *,
        attempts: list[RetryAttempt],
        attempts_made: int,
    ) -> RetryResult:
        ended = monotonic()
        retry_count = max(attempts_made - 1, 0)
        result = TaskResult(
            id=task.id,
            success=False,
            error=error,
            duration=elapsed_ms(context.start_time, ended),
            retry_count=retry_count,
            attempts=attempts,
            abandoned_attempts=context.abandoned_attempts,
            started_at=context.start_time,
            ended_at=ended,
        )
        return RetryResult(
            success=False,
            result=result,
            error=error,
            retry_count=retry_count,
            attempts=attempts,
        )

    async def _handle_retry(
        self,
        task: TaskDefinition,
        retry_number: int,
        config: RetryConfig,
        error: Exception,
        workflow_id: str,
    ) -> None:
        self._logger.warning(
            "[Workflow: %s] [Task: %s] Retry %d/%d: %s",
            workflow_id,
            task.id,
            retry_number,
            config.max_retries,
            error,
        )
        self._emitter.emit(
            EventKind.TASK_RETRY,
            task_id=task.id,
            workflow_id=workflow_id,
            retry_count=retry_number,
            error=str(error),
        )
        await delay(calculate_retry_delay(retry_number, config))
