"""Workflow validation and graph inspection helpers.

Checks return a typed :class:`ValidationResult` instead of raising, so the
engine can decide synchronously whether to short-circuit a run. All graph
walks are iterative; long dependency chains do not hit the recursion limit.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from taskwave.config.schema import RETRY_STRATEGIES, TaskDefinition
from taskwave.dag.build import build_dependency_map
from taskwave.util.errors import (
    CircularDependencyError,
    DuplicateTaskError,
    InvalidTaskError,
    MissingDependencyError,
    ValidationError,
)

DUPLICATE_TASK_IDS = "Duplicate task IDs found in workflow"
EMPTY_TASK_ID = "Task ID is required and cannot be empty"


@dataclass(frozen=True, slots=True)
class ValidationResult:
    error: ValidationError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


def _is_non_blank_str(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _circular(task_id: str) -> CircularDependencyError:
    return CircularDependencyError(f"Circular dependency detected involving task '{task_id}'")


def validate_task(task: TaskDefinition) -> ValidationError | None:
    """Structural checks on a single task; returns the first problem found."""
    if not isinstance(task, TaskDefinition):
        return InvalidTaskError(
            f"workflow entries must be TaskDefinition, got {type(task).__name__}"
        )
    if not _is_non_blank_str(task.id):
        return InvalidTaskError(EMPTY_TASK_ID)
    if not callable(task.handler):
        return InvalidTaskError(f"Task '{task.id}' must have a valid handler function")
    if task.retries is not None and (not _is_int(task.retries) or task.retries < 0):
        return InvalidTaskError(f"Task '{task.id}' retries must be a non-negative integer")
    if task.timeout_ms is not None and (not _is_int(task.timeout_ms) or task.timeout_ms <= 0):
        return InvalidTaskError(f"Task '{task.id}' timeout_ms must be a positive integer")
    if task.retry_strategy is not None and task.retry_strategy not in RETRY_STRATEGIES:
        return InvalidTaskError(
            f"Task '{task.id}' retry_strategy must be one of {list(RETRY_STRATEGIES)}"
        )
    if not isinstance(task.retryable_errors, tuple) or not all(
        isinstance(item, str) for item in task.retryable_errors
    ):
        return InvalidTaskError(f"Task '{task.id}' retryable_errors must be a list of strings")
    if not isinstance(task.dependencies, tuple):
        return InvalidTaskError(f"Task '{task.id}' dependencies must be a list")
    for dep in task.dependencies:
        if not _is_non_blank_str(dep):
            return InvalidTaskError(f"Task '{task.id}' has invalid dependency ID: {dep!r}")
        if dep == task.id:
            return CircularDependencyError(
                f"Circular dependency detected: task '{task.id}' depends on itself"
            )
    return None


def _check_unique_ids(tasks: Sequence[TaskDefinition]) -> ValidationError | None:
    ids = [task.id for task in tasks]
    if len(set(ids)) != len(ids):
        return DuplicateTaskError(DUPLICATE_TASK_IDS)
    return None


def _check_references(tasks: Sequence[TaskDefinition]) -> ValidationError | None:
    known = {task.id for task in tasks}
    for task in tasks:
        for dep in task.dependencies:
            if dep not in known:
                return MissingDependencyError(
                    f"Task '{task.id}' depends on non-existent task '{dep}'"
                )
    return None


def _has_cycle_from(root: str, deps: dict[str, list[str]], visited: set[str]) -> bool:
    on_stack = {root}
    visited.add(root)
    stack: list[tuple[str, Iterator[str]]] = [(root, iter(deps.get(root, ())))]
    while stack:
        node, children = stack[-1]
        for dep in children:
            if dep in on_stack:
                return True
            if dep not in visited:
                visited.add(dep)
                on_stack.add(dep)
                stack.append((dep, iter(deps.get(dep, ()))))
                break
        else:
            stack.pop()
            on_stack.discard(node)
    return False


def _check_acyclic(tasks: Sequence[TaskDefinition]) -> ValidationError | None:
    deps = build_dependency_map(tasks)
    visited: set[str] = set()
    for task in tasks:
        if task.id in visited:
            continue
        if _has_cycle_from(task.id, deps, visited):
            return _circular(task.id)
    return None


def validate_workflow(tasks: Sequence[TaskDefinition]) -> ValidationResult:
    """Validate a full task list before anything executes.

    Order: per-task structure, unique ids, dependency references, cycles.
    """
    for task in tasks:
        error = validate_task(task)
        if error is not None:
            return ValidationResult(error)
    for check in (_check_unique_ids, _check_references, _check_acyclic):
        error = check(tasks)
        if error is not None:
            return ValidationResult(error)
    return ValidationResult()


def get_execution_order(tasks: Sequence[TaskDefinition]) -> list[str]:
    """Topological order (dependencies first) for inspection.

    Raises CircularDependencyError when a cycle is found. Unknown dependency
    ids are ignored.
    """
    deps = build_dependency_map(tasks)
    order: list[str] = []
    done: set[str] = set()
    temp: set[str] = set()

    for task in tasks:
        if task.id in done:
            continue
        temp.add(task.id)
        stack: list[tuple[str, Iterator[str]]] = [(task.id, iter(deps[task.id]))]
        while stack:
            node, children = stack[-1]
            for dep in children:
                if dep in temp:
                    raise _circular(dep)
                if dep in done or dep not in deps:
                    continue
                temp.add(dep)
                stack.append((dep, iter(deps[dep])))
                break
            else:
                stack.pop()
                temp.discard(node)
                done.add(node)
                order.append(node)
    return order


def get_transitive_dependencies(task_id: str, tasks: Sequence[TaskDefinition]) -> set[str]:
    """Every task id reachable through dependencies of ``task_id``."""
    deps = build_dependency_map(tasks)
    collected: set[str] = set()
    visited = {task_id}
    pending = list(deps.get(task_id, ()))
    while pending:
        current = pending.pop()
        collected.add(current)
        if current in visited:
            continue
        visited.add(current)
        pending.extend(deps.get(current, ()))
    return collected
