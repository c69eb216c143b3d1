"""Build graph structures from task definitions."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Sequence

from taskwave.config.schema import TaskDefinition


def build_dependency_map(tasks: Sequence[TaskDefinition]) -> dict[str, list[str]]:
    """Return dependency ids by task id, in declaration order.

    When ids repeat, the first definition wins.
    """
    deps: dict[str, list[str]] = {}
    for task in tasks:
        deps.setdefault(task.id, list(task.dependencies))
    return deps


def build_adjacency(tasks: Sequence[TaskDefinition]) -> tuple[dict[str, list[str]], dict[str, int]]:
    """Return dependents adjacency and in-degree by task id."""
    dependents: dict[str, list[str]] = defaultdict(list)
    in_degree: dict[str, int] = {}

    for task in tasks:
        in_degree[task.id] = len(task.dependencies)
        dependents.setdefault(task.id, [])
        for dep in task.dependencies:
            dependents[dep].append(task.id)

    return dict(dependents), in_degree
