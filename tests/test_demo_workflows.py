from __future__ import annotations

import pytest

from taskwave.config.schema import EngineDefaults
from taskwave.dag.validate import validate_workflow
from taskwave.demo.workflows import DEMO_WORKFLOWS, registry_workflow, retry_workflow
from taskwave.exec.runner import WorkflowEngine


@pytest.mark.parametrize("name", sorted(DEMO_WORKFLOWS))
def test_demo_workflows_are_valid(name: str) -> None:
    assert validate_workflow(DEMO_WORKFLOWS[name]()).ok


@pytest.mark.asyncio
async def test_retry_demo_succeeds_on_third_attempt() -> None:
    engine = WorkflowEngine(defaults=EngineDefaults(base_delay_ms=1))
    result = await engine.run(retry_workflow())
    assert result.success is True
    assert result.results["unreliableTask"].retry_count == 2
    assert result.results["unreliableTask"].data == "success after retries"
    assert result.results["dependentTask"].data == "dependent task completed"


@pytest.mark.asyncio
async def test_registry_demo_runs_every_registered_task() -> None:
    tasks = registry_workflow()
    result = await WorkflowEngine().run(tasks)
    assert result.success is True
    assert set(result.results) == {task.id for task in tasks}
    assert result.results["processData"].data == {"processed": True, "count": 2}
