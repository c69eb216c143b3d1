"""Explicit task registration.

Maps ``(id, handler, options)`` into :class:`TaskDefinition` values without
looking at classes or attributes at runtime.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

from taskwave.config.schema import Handler, TaskDefinition
from taskwave.util.errors import DuplicateTaskError, InvalidTaskError

_OPTION_KEYS = {
    "dependencies",
    "retries",
    "timeout_ms",
    "retry_strategy",
    "retryable_errors",
    "description",
    "workflow_id",
}


def make_task(
    task_id: str, handler: Handler, options: Mapping[str, Any] | None = None
) -> TaskDefinition:
    opts = dict(options or {})
    unknown = set(opts) - _OPTION_KEYS
    if unknown:
        raise InvalidTaskError(f"task '{task_id}' has unknown options: {sorted(unknown)}")
    return TaskDefinition(id=task_id, handler=handler, **opts)


def build_tasks(
    entries: Iterable[tuple[str, Handler] | tuple[str, Handler, Mapping[str, Any]]],
) -> list[TaskDefinition]:
    """Build definitions from ``(id, handler)`` or ``(id, handler, options)`` tuples."""
    tasks: list[TaskDefinition] = []
    for entry in entries:
        if len(entry) == 2:
            task_id, handler = entry  # type: ignore[misc]
            options: Mapping[str, Any] | None = None
        else:
            task_id, handler, options = entry  # type: ignore[misc]
        tasks.append(make_task(task_id, handler, options))
    return tasks


class TaskRegistry:
    """Ordered collection of task definitions built one registration at a time."""

    def __init__(self, *, workflow_id: str | None = None) -> None:
        self._tasks: dict[str, TaskDefinition] = {}
        self._workflow_id = workflow_id

    def add(self, task_id: str, handler: Handler, **options: Any) -> TaskDefinition:
        if task_id in self._tasks:
            raise DuplicateTaskError(f"task '{task_id}' is already registered")
        if self._workflow_id is not None:
            options.setdefault("workflow_id", self._workflow_id)
        task = make_task(task_id, handler, options)
        self._tasks[task_id] = task
        return task

    def task(
        self, task_id: str | None = None, **options: Any
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of :meth:`add`; the id defaults to the function name."""

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            self.add(task_id or fn.__name__, fn, **options)
            return fn

        return decorator

    def get(self, task_id: str) -> TaskDefinition | None:
        return self._tasks.get(task_id)

    def definitions(self) -> list[TaskDefinition]:
        return list(self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __iter__(self) -> Iterator[TaskDefinition]:
        return iter(self._tasks.values())
