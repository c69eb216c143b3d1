from __future__ import annotations

from pathlib import Path

import pytest
from rich.console import Console

import taskwave.cli as cli_module
from taskwave.cli import _exit_code_for_result, _print_order, _print_result, _write_report
from taskwave.config.registry import build_tasks
from taskwave.state.model import TaskResult, WorkflowResult


async def _noop() -> None:
    return None


def _recording_console(monkeypatch: pytest.MonkeyPatch) -> Console:
    console = Console(record=True, width=160)
    monkeypatch.setattr(cli_module, "console", console)
    return console


def _result(success: bool, *, abandoned: int = 0) -> WorkflowResult:
    task = TaskResult(
        id="a",
        success=success,
        duration=5.0,
        retry_count=0,
        error=None if success else RuntimeError("Task a timed out after 10ms"),
        abandoned_attempts=abandoned,
    )
    return WorkflowResult(
        workflow_id="wf",
        success=success,
        results={"a": task},
        duration=6.0,
        errors=[] if success else [task.error],  # type: ignore[list-item]
    )


def test_exit_code_for_result_maps_success_and_failure() -> None:
    assert _exit_code_for_result(_result(True)) == 0
    assert _exit_code_for_result(_result(False)) == 3


def test_print_order_lists_transitive_dependencies(monkeypatch: pytest.MonkeyPatch) -> None:
    console = _recording_console(monkeypatch)
    tasks = build_tasks(
        [
            ("load", _noop),
            ("clean", _noop, {"dependencies": ["load"]}),
            ("publish", _noop, {"dependencies": ["clean"]}),
        ]
    )
    _print_order(tasks)
    text = console.export_text()
    assert "Dry Run - Execution Order" in text
    rows = [[cell.strip() for cell in line.split("│")] for line in text.splitlines()]
    publish_row = next(row for row in rows if len(row) > 3 and row[2] == "publish")
    assert publish_row[1] == "3"
    assert publish_row[3] == "clean, load"
    assert text.index("load") < text.index("clean") < text.index("publish")


def test_print_result_warns_about_abandoned_handlers(monkeypatch: pytest.MonkeyPatch) -> None:
    console = _recording_console(monkeypatch)
    _print_result(_result(False, abandoned=1))
    text = console.export_text()
    assert "FAILED" in text
    assert "may still be running: a" in text


def test_write_report_creates_parent_directory(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    console = _recording_console(monkeypatch)
    report_path = tmp_path / "nested" / "report.md"
    _write_report(_result(True), report_path, name="demo")
    assert report_path.read_text(encoding="utf-8").startswith("# Workflow Run Report")
    assert str(report_path) in console.export_text()


def test_write_report_warns_when_target_is_directory(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    console = _recording_console(monkeypatch)
    _write_report(_result(True), tmp_path, name=None)
    assert "failed to write report" in console.export_text()
