from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from taskwave.config.loader import load_workflow
from taskwave.config.schema import EngineDefaults, TaskDefinition
from taskwave.dag.build import build_adjacency
from taskwave.dag.validate import (
    get_execution_order,
    get_transitive_dependencies,
    validate_workflow,
)
from taskwave.demo.workflows import DEMO_WORKFLOWS
from taskwave.exec.events import LoggingObserver
from taskwave.exec.runner import WorkflowEngine
from taskwave.report.render_md import render_markdown
from taskwave.report.summarize import build_summary
from taskwave.state.model import WorkflowResult
from taskwave.util.errors import PlanError

app = typer.Typer(help="In-memory task orchestration engine")
console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _exit_code_for_result(result: WorkflowResult) -> int:
    return 0 if result.success else 3


def _print_order(tasks: list[TaskDefinition]) -> None:
    order = get_execution_order(tasks)
    dependents, _ = build_adjacency(tasks)
    table = Table(title="Dry Run - Execution Order")
    table.add_column("#")
    table.add_column("task_id")
    table.add_column("depends on (transitive)")
    table.add_column("dependents")
    for idx, task_id in enumerate(order, start=1):
        closure = sorted(get_transitive_dependencies(task_id, tasks))
        table.add_row(
            str(idx),
            task_id,
            ", ".join(closure) or "-",
            ", ".join(dependents.get(task_id, [])) or "-",
        )
    console.print(table)


def _print_result(result: WorkflowResult) -> None:
    table = Table(title=f"Workflow: {result.workflow_id}")
    table.add_column("task_id")
    table.add_column("status")
    table.add_column("retries", justify="right")
    table.add_column("duration_ms", justify="right")
    table.add_column("error")
    for task_id, task in result.results.items():
        table.add_row(
            task_id,
            "SUCCESS" if task.success else "FAILED",
            str(task.retry_count),
            str(task.duration),
            "-" if task.error is None else str(task.error),
        )
    console.print(table)
    if not result.results and result.errors:
        console.print(f"[red]Workflow failed:[/red] {result.errors[0]}")
    if result.abandoned:
        console.print(
            "[yellow]Warning:[/yellow] timed-out handlers may still be running: "
            + ", ".join(result.abandoned)
        )
    console.print(f"state: [bold]{'SUCCESS' if result.success else 'FAILED'}[/bold]")
    console.print(f"duration_ms: {result.duration}")


def _write_report(result: WorkflowResult, report_path: Path, *, name: str | None) -> None:
    md = render_markdown(build_summary(result, name=name))
    try:
        report_path.parent.mkdir(parents=True, exist_ok=True)
        report_path.write_text(md + "\n", encoding="utf-8")
    except OSError as exc:
        console.print(f"[yellow]Warning:[/yellow] failed to write report: {exc}")
        return
    console.print(f"report: {report_path}")


def _execute(
    tasks: list[TaskDefinition],
    *,
    defaults: EngineDefaults,
    name: str | None,
    workflow_id: str | None,
    as_json: bool,
    report: Path | None,
) -> None:
    engine = WorkflowEngine(defaults=defaults, observers=[LoggingObserver()])
    result = asyncio.run(engine.run(tasks, workflow_id=workflow_id))
    if as_json:
        typer.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        _print_result(result)
    if report is not None:
        _write_report(result, report, name=name)
    raise typer.Exit(_exit_code_for_result(result))


@app.command()
def run(
    workflow_path: Annotated[Path, typer.Argument(exists=True, dir_okay=False)],
    workdir: Annotated[Path, typer.Option("--workdir")] = Path("."),
    workflow_id: Annotated[str | None, typer.Option("--workflow-id")] = None,
    dry_run: Annotated[bool, typer.Option("--dry-run")] = False,
    as_json: Annotated[bool, typer.Option("--json")] = False,
    report: Annotated[Path | None, typer.Option("--report")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Run a workflow described by a YAML file."""
    _setup_logging(verbose)
    resolved_workdir = str(workdir.resolve())
    if resolved_workdir not in sys.path:
        sys.path.insert(0, resolved_workdir)
    try:
        spec = load_workflow(workflow_path)
    except PlanError as exc:
        console.print(f"[red]Workflow load error:[/red] {exc}")
        raise typer.Exit(2) from exc

    validation = validate_workflow(spec.tasks)
    if validation.error is not None:
        console.print(f"[red]Workflow validation error:[/red] {validation.error}")
        raise typer.Exit(2)

    if dry_run:
        _print_order(spec.tasks)
        raise typer.Exit(0)

    _execute(
        spec.tasks,
        defaults=spec.defaults,
        name=spec.name,
        workflow_id=workflow_id,
        as_json=as_json,
        report=report,
    )


@app.command()
def demo(
    name: Annotated[str, typer.Argument(help=f"one of: {', '.join(DEMO_WORKFLOWS)}")],
    as_json: Annotated[bool, typer.Option("--json")] = False,
    report: Annotated[Path | None, typer.Option("--report")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Run one of the built-in example workflows."""
    _setup_logging(verbose)
    factory = DEMO_WORKFLOWS.get(name)
    if factory is None:
        console.print(f"[red]Unknown demo:[/red] {name}")
        raise typer.Exit(2)
    _execute(
        factory(),
        defaults=EngineDefaults(),
        name=f"demo:{name}",
        workflow_id=None,
        as_json=as_json,
        report=report,
    )


if __name__ == "__main__":
    app()
