"""Built-in example workflows used by ``taskwave demo``."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime
from typing import Any

from taskwave.config.registry import TaskRegistry, build_tasks
from taskwave.config.schema import TaskDefinition


def _returning(value: Any, delay_ms: float = 0) -> Callable[[], Any]:
    async def _handler() -> Any:
        if delay_ms:
            await asyncio.sleep(delay_ms / 1000.0)
        return value

    return _handler


def simple_workflow() -> list[TaskDefinition]:
    return build_tasks(
        [
            ("task1", _returning("result1")),
            ("task2", _returning("result2")),
        ]
    )


def dependency_workflow() -> list[TaskDefinition]:
    return build_tasks(
        [
            ("task1", _returning("result1")),
            ("task2", _returning("result2"), {"dependencies": ["task1"]}),
            ("task3", _returning("result3"), {"dependencies": ["task2"]}),
        ]
    )


def parallel_workflow() -> list[TaskDefinition]:
    return build_tasks(
        [
            ("task1", _returning("result1", 200)),
            ("task2", _returning("result2", 200)),
            ("task3", _returning("result3", 100), {"dependencies": ["task1", "task2"]}),
        ]
    )


def retry_workflow() -> list[TaskDefinition]:
    attempts = 0

    async def unreliable() -> str:
        nonlocal attempts
        attempts += 1
        if attempts < 3:
            raise RuntimeError(f"temporary failure on attempt {attempts}")
        return "success after retries"

    return build_tasks(
        [
            ("unreliableTask", unreliable, {"retries": 2, "timeout_ms": 1000}),
            (
                "dependentTask",
                _returning("dependent task completed"),
                {"dependencies": ["unreliableTask"]},
            ),
        ]
    )


def registry_workflow() -> list[TaskDefinition]:
    registry = TaskRegistry()

    @registry.task(
        "fetchData", retries=2, timeout_ms=1000, description="Fetch data from remote API"
    )
    async def fetch_data() -> dict[str, Any]:
        await asyncio.sleep(0.1)
        return {"users": [{"id": 1, "name": "John"}, {"id": 2, "name": "Jane"}]}

    @registry.task(
        "processData",
        dependencies=["fetchData"],
        retries=1,
        timeout_ms=500,
        description="Process the fetched data",
    )
    async def process_data() -> dict[str, Any]:
        await asyncio.sleep(0.05)
        return {"processed": True, "count": 2}

    @registry.task(
        "validateData",
        dependencies=["fetchData"],
        retries=1,
        timeout_ms=300,
        description="Validate fetched data",
    )
    async def validate_data() -> dict[str, Any]:
        await asyncio.sleep(0.03)
        return {"valid": True, "validation_errors": []}

    @registry.task(
        "saveResult", dependencies=["processData"], description="Save processed result"
    )
    async def save_result() -> dict[str, Any]:
        await asyncio.sleep(0.075)
        return {"saved": True, "timestamp": datetime.now().astimezone().isoformat()}

    @registry.task("generateReport", timeout_ms=2000, description="Generate summary report")
    async def generate_report() -> dict[str, Any]:
        await asyncio.sleep(0.15)
        return {"report": "Monthly Summary Report"}

    return registry.definitions()


DEMO_WORKFLOWS: dict[str, Callable[[], list[TaskDefinition]]] = {
    "simple": simple_workflow,
    "dependencies": dependency_workflow,
    "parallel": parallel_workflow,
    "retry": retry_workflow,
    "registry": registry_workflow,
}
