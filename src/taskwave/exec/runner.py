from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence

from taskwave.config.schema import EngineDefaults, TaskDefinition
from taskwave.dag.validate import validate_workflow
from taskwave.exec.events import EventEmitter, EventKind, Observer
from taskwave.exec.retry_handler import RetryHandler
from taskwave.state.model import TaskExecutionContext, TaskResult, WorkflowResult
from taskwave.state.tracker import TaskStateTracker
from taskwave.util.errors import DeadlockError
from taskwave.util.ids import new_workflow_id
from taskwave.util.time import elapsed_ms, monotonic


class WorkflowEngine:
    """Runs a task list in dependency waves.

    Each wave is every task whose dependencies have all reached a terminal
    state; the wave runs concurrently and must finish before the next one is
    computed. Task failures never abort the run; only a validation failure or
    an unexpected internal error short-circuits it.
    """

    def __init__(
        self,
        *,
        defaults: EngineDefaults | None = None,
        observers: Iterable[Observer] = (),
        logger: logging.Logger | None = None,
    ) -> None:
        self._defaults = defaults or EngineDefaults()
        self._logger = logger or logging.getLogger(__name__)
        self._emitter = EventEmitter(observers, logger=self._logger)
        self._retry_handler = RetryHandler(
            self._emitter, defaults=self._defaults, logger=self._logger
        )

    def subscribe(self, observer: Observer) -> None:
        self._emitter.subscribe(observer)

    async def run(
        self, tasks: Sequence[TaskDefinition], *, workflow_id: str | None = None
    ) -> WorkflowResult:
        run_id = workflow_id or new_workflow_id()
        workflow = list(tasks)
        start = monotonic()
        results: dict[str, TaskResult] = {}
        errors: list[BaseException] = []

        self._logger.info("Starting workflow with %d tasks", len(workflow))
        self._emitter.emit(
            EventKind.WORKFLOW_STARTED, task_count=len(workflow), workflow_id=run_id
        )

        validation = validate_workflow(workflow)
        if validation.error is not None:
            return self._abort(run_id, start, {}, validation.error)

        try:
            await self._execute_waves(workflow, run_id, results, errors)
        except Exception as exc:
            return self._abort(run_id, start, results, exc)

        duration = elapsed_ms(start)
        success = not errors
        if success:
            self._logger.info("Workflow completed successfully in %sms", duration)
            self._emitter.emit(
                EventKind.WORKFLOW_COMPLETED,
                workflow_id=run_id,
                duration=duration,
                results=results,
            )
        else:
            self._logger.error("Workflow failed with %d errors in %sms", len(errors), duration)
            self._emitter.emit(
                EventKind.WORKFLOW_FAILED,
                workflow_id=run_id,
                duration=duration,
                errors=list(errors),
            )
        return WorkflowResult(
            workflow_id=run_id,
            success=success,
            results=results,
            duration=duration,
            errors=errors,
        )

    def _abort(
        self,
        run_id: str,
        start: float,
        results: dict[str, TaskResult],
        error: BaseException,
    ) -> WorkflowResult:
        duration = elapsed_ms(start)
        self._logger.error("Workflow execution failed: %s", error)
        self._emitter.emit(
            EventKind.WORKFLOW_FAILED, workflow_id=run_id, duration=duration, error=error
        )
        return WorkflowResult(
            workflow_id=run_id,
            success=False,
            results=results,
            duration=duration,
            errors=[error],
        )

    async def _execute_waves(
        self,
        workflow: list[TaskDefinition],
        run_id: str,
        results: dict[str, TaskResult],
        errors: list[BaseException],
    ) -> None:
        tracker = TaskStateTracker()
        while not tracker.is_all_completed(len(workflow)):
            ready = tracker.get_pending(workflow)
            if not ready:
                remaining = ", ".join(task.id for task in tracker.get_remaining(workflow))
                raise DeadlockError(f"Deadlock detected. Remaining tasks: {remaining}")
            for task in ready:
                tracker.mark_in_progress(task.id)
            self._logger.debug("dispatching wave: %s", [task.id for task in ready])
            await asyncio.gather(
                *(self._execute_task(task, run_id, results, errors, tracker) for task in ready)
            )

    async def _execute_task(
        self,
        task: TaskDefinition,
        run_id: str,
        results: dict[str, TaskResult],
        errors: list[BaseException],
        tracker: TaskStateTracker,
    ) -> None:
        context = TaskExecutionContext(
            task_id=task.id,
            start_time=monotonic(),
            retry_count=0,
            max_retries=self._defaults.retries if task.retries is None else task.retries,
            timeout_ms=self._defaults.timeout_ms if task.timeout_ms is None else task.timeout_ms,
        )
        workflow_id = task.workflow_id or run_id
        self._logger.info("Starting task: %s", task.id)
        self._emitter.emit(EventKind.TASK_STARTED, task_id=task.id, workflow_id=workflow_id)

        outcome = await self._retry_handler.execute_with_retry(
            task, context, workflow_id=workflow_id
        )
        result = outcome.result
        if outcome.success:
            self._logger.info("Task %s completed successfully", task.id)
            self._emitter.emit(
                EventKind.TASK_COMPLETED,
                task_id=task.id,
                workflow_id=workflow_id,
                duration=result.duration,
                data=result.data,
            )
        else:
            error = outcome.error
            assert error is not None
            errors.append(error)
            self._logger.error(
                "Task %s failed after %d retries: %s", task.id, outcome.retry_count, error
            )
            self._emitter.emit(
                EventKind.TASK_FAILED,
                task_id=task.id,
                workflow_id=workflow_id,
                error=str(error),
                retry_count=outcome.retry_count,
            )

        results[task.id] = result
        tracker.mark_completed(task.id)


async def run_workflow(
    tasks: Sequence[TaskDefinition],
    *,
    defaults: EngineDefaults | None = None,
    observers: Iterable[Observer] = (),
    logger: logging.Logger | None = None,
    workflow_id: str | None = None,
) -> WorkflowResult:
    engine = WorkflowEngine(defaults=defaults, observers=observers, logger=logger)
    return await engine.run(tasks, workflow_id=workflow_id)
