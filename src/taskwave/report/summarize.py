from __future__ import annotations

from taskwave.state.model import WorkflowResult, _error_text
from taskwave.util.time import now_iso


def build_summary(result: WorkflowResult, *, name: str | None = None) -> dict[str, object]:
    task_rows: list[dict[str, object]] = []
    problem_rows: list[dict[str, object]] = []

    for task_id, task in result.results.items():
        task_rows.append(
            {
                "id": task_id,
                "status": "SUCCESS" if task.success else "FAILED",
                "attempts": len(task.attempts),
                "retry_count": task.retry_count,
                "duration_ms": task.duration,
                "abandoned_attempts": task.abandoned_attempts,
            }
        )
        if not task.success:
            problem_rows.append(
                {
                    "id": task_id,
                    "error": _error_text(task.error),
                    "attempt_errors": [
                        attempt.error_message or "(no message)"
                        for attempt in task.attempts
                        if not attempt.success
                    ],
                }
            )

    return {
        "run": {
            "workflow_id": result.workflow_id,
            "name": name,
            "status": "SUCCESS" if result.success else "FAILED",
            "duration_ms": result.duration,
            "task_count": len(result.results),
            "reported_at": now_iso(),
        },
        "tasks": task_rows,
        "problems": problem_rows,
        "errors": [_error_text(error) for error in result.errors],
        "abandoned": result.abandoned,
    }
