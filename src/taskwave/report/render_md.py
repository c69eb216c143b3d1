from __future__ import annotations

from typing import Any


def render_markdown(summary: dict[str, Any]) -> str:
    run = summary["run"]
    tasks = summary["tasks"]
    problems = summary["problems"]
    errors = summary["errors"]
    abandoned = summary["abandoned"]

    lines: list[str] = []
    lines.append("# Workflow Run Report")
    lines.append("")
    lines.append("## Run Overview")
    lines.append("")
    lines.append(f"- workflow_id: `{run['workflow_id']}`")
    lines.append(f"- name: {run['name'] or '(none)'}")
    lines.append(f"- status: **{run['status']}**")
    lines.append(f"- duration_ms: {run['duration_ms']}")
    lines.append(f"- tasks run: {run['task_count']}")
    lines.append(f"- reported: {run['reported_at']}")
    lines.append("")
    lines.append("## Task Results")
    lines.append("")
    if tasks:
        lines.append("| id | status | attempts | retries | duration_ms | abandoned |")
        lines.append("|---|---:|---:|---:|---:|---:|")
        for row in tasks:
            lines.append(
                f"| {row['id']} | {row['status']} | {row['attempts']} | "
                f"{row['retry_count']} | {row['duration_ms']} | {row['abandoned_attempts']} |"
            )
    else:
        lines.append("No tasks were dispatched.")
    lines.append("")
    lines.append("## Failures")
    lines.append("")
    if problems:
        for row in problems:
            lines.append(f"### {row['id']}")
            lines.append(f"- error: `{row['error']}`")
            if row["attempt_errors"]:
                lines.append("- attempts:")
                for idx, message in enumerate(row["attempt_errors"], start=1):
                    lines.append(f"  {idx}. {message}")
            lines.append("")
    elif errors:
        for message in errors:
            lines.append(f"- {message}")
        lines.append("")
    else:
        lines.append("No failed tasks.")
        lines.append("")
    if abandoned:
        lines.append("## Abandoned Attempts")
        lines.append("")
        lines.append("Timed-out handlers of these tasks may still be running:")
        lines.append("")
        for task_id in abandoned:
            lines.append(f"- `{task_id}`")
        lines.append("")
    return "\n".join(lines)
