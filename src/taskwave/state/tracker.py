"""Per-run task state tracking."""

from __future__ import annotations

from collections.abc import Iterable

from taskwave.config.schema import TaskDefinition


class TaskStateTracker:
    """Tracks which tasks are in progress or completed within a single run.

    ``completed`` covers both success and failure: a failed task still
    unblocks its dependents. The two id sets are always disjoint.
    """

    def __init__(self) -> None:
        self._completed: set[str] = set()
        self._in_progress: set[str] = set()

    def mark_in_progress(self, task_id: str) -> None:
        if task_id in self._completed:
            return
        self._in_progress.add(task_id)

    def mark_completed(self, task_id: str) -> None:
        self._in_progress.discard(task_id)
        self._completed.add(task_id)

    def is_completed(self, task_id: str) -> bool:
        return task_id in self._completed

    def is_in_progress(self, task_id: str) -> bool:
        return task_id in self._in_progress

    def is_ready(self, task: TaskDefinition) -> bool:
        """Not started, and every dependency has reached a terminal state."""
        if self.is_completed(task.id) or self.is_in_progress(task.id):
            return False
        return all(dep in self._completed for dep in task.dependencies)

    def get_pending(self, tasks: Iterable[TaskDefinition]) -> list[TaskDefinition]:
        return [task for task in tasks if self.is_ready(task)]

    def get_remaining(self, tasks: Iterable[TaskDefinition]) -> list[TaskDefinition]:
        return [task for task in tasks if task.id not in self._completed]

    def is_all_completed(self, total: int) -> bool:
        return len(self._completed) == total
