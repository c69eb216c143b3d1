from __future__ import annotations

import functools
import importlib
import math
import re
from pathlib import Path
from typing import Any

import yaml

from taskwave.config.schema import (
    RETRY_STRATEGIES,
    EngineDefaults,
    Handler,
    TaskDefinition,
    WorkflowSpec,
)
from taskwave.dag.validate import validate_task
from taskwave.util.errors import PlanError

_HANDLER_PATTERN = re.compile(r"^[A-Za-z_][\w.]*:[A-Za-z_][\w.]*$")
_ALLOWED_ROOT_KEYS = {"name", "defaults", "tasks"}
_ALLOWED_DEFAULT_KEYS = {
    "timeout_ms",
    "retries",
    "base_delay_ms",
    "max_delay_ms",
    "retryable_errors",
}
_ALLOWED_TASK_KEYS = {
    "id",
    "handler",
    "kwargs",
    "dependencies",
    "retries",
    "timeout_ms",
    "retry_strategy",
    "retryable_errors",
    "description",
}


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_positive_number(value: object) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    return math.isfinite(value) and value > 0


def _is_non_blank_str(value: object) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _ensure_list_str(name: str, value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(_is_non_blank_str(v) for v in value):
        raise PlanError(f"{name} must be list[str] without empty items")
    return value


def resolve_handler(path: str, kwargs: dict[str, Any] | None = None) -> Handler:
    """Import ``package.module:attr`` and bind ``kwargs`` to it."""
    if not isinstance(path, str) or _HANDLER_PATTERN.fullmatch(path) is None:
        raise PlanError(f"handler must look like 'package.module:function', got {path!r}")
    module_name, _, attr_path = path.partition(":")
    try:
        target: Any = importlib.import_module(module_name)
    except ImportError as exc:
        raise PlanError(f"cannot import handler module '{module_name}': {exc}") from exc
    for attr in attr_path.split("."):
        try:
            target = getattr(target, attr)
        except AttributeError as exc:
            raise PlanError(f"handler '{path}' not found") from exc
    if not callable(target):
        raise PlanError(f"handler '{path}' is not callable")
    if kwargs:
        return functools.partial(target, **kwargs)
    return target


def _parse_defaults(raw: Any) -> EngineDefaults:
    if raw is None:
        return EngineDefaults()
    if not isinstance(raw, dict):
        raise PlanError("defaults must be a mapping")
    unknown = set(raw) - _ALLOWED_DEFAULT_KEYS
    if unknown:
        raise PlanError(f"defaults contains unknown fields: {sorted(unknown)}")
    base = EngineDefaults()

    timeout_ms = raw.get("timeout_ms", base.timeout_ms)
    if not _is_int(timeout_ms) or timeout_ms <= 0:
        raise PlanError("defaults.timeout_ms must be int > 0")
    retries = raw.get("retries", base.retries)
    if not _is_int(retries) or retries < 0:
        raise PlanError("defaults.retries must be int >= 0")
    base_delay_ms = raw.get("base_delay_ms", base.base_delay_ms)
    if not _is_positive_number(base_delay_ms):
        raise PlanError("defaults.base_delay_ms must be > 0")
    max_delay_ms = raw.get("max_delay_ms", base.max_delay_ms)
    if not _is_positive_number(max_delay_ms):
        raise PlanError("defaults.max_delay_ms must be > 0")
    retryable = _ensure_list_str("defaults.retryable_errors", raw.get("retryable_errors"))

    return EngineDefaults(
        timeout_ms=timeout_ms,
        retries=retries,
        base_delay_ms=base_delay_ms,
        max_delay_ms=max_delay_ms,
        retryable_errors=tuple(retryable),
    )


def _parse_task(raw: Any) -> TaskDefinition:
    if not isinstance(raw, dict):
        raise PlanError("task must be mapping")
    if "id" not in raw or not _is_non_blank_str(raw["id"]):
        raise PlanError("task.id is required and must be non-empty string")
    task_id = raw["id"]
    unknown = set(raw) - _ALLOWED_TASK_KEYS
    if unknown:
        raise PlanError(f"task '{task_id}' has unknown fields: {sorted(unknown)}")
    if "handler" not in raw:
        raise PlanError(f"task '{task_id}' missing handler")

    kwargs = raw.get("kwargs")
    if kwargs is not None and (
        not isinstance(kwargs, dict) or not all(isinstance(k, str) for k in kwargs)
    ):
        raise PlanError(f"task '{task_id}' kwargs must be a mapping with string keys")

    strategy = raw.get("retry_strategy")
    if strategy is not None and strategy not in RETRY_STRATEGIES:
        raise PlanError(
            f"task '{task_id}' retry_strategy must be one of {list(RETRY_STRATEGIES)}"
        )

    description = raw.get("description")
    if description is not None and not isinstance(description, str):
        raise PlanError(f"task '{task_id}' description must be a string")

    dependencies = _ensure_list_str(f"task '{task_id}' dependencies", raw.get("dependencies"))
    task = TaskDefinition(
        id=task_id,
        handler=resolve_handler(raw["handler"], kwargs),
        dependencies=tuple(dependencies),
        retries=raw.get("retries"),
        timeout_ms=raw.get("timeout_ms"),
        retry_strategy=strategy,
        retryable_errors=tuple(
            _ensure_list_str(f"task '{task_id}' retryable_errors", raw.get("retryable_errors"))
        ),
        description=description,
    )
    error = validate_task(task)
    if error is not None:
        raise PlanError(str(error)) from error
    return task


def parse_workflow(raw: Any) -> WorkflowSpec:
    if not isinstance(raw, dict):
        raise PlanError("workflow root must be a mapping")
    if any(not isinstance(key, str) for key in raw):
        raise PlanError("workflow root keys must be strings")
    unknown_root = set(raw) - _ALLOWED_ROOT_KEYS
    if unknown_root:
        raise PlanError(f"workflow contains unknown fields: {sorted(unknown_root)}")

    name = raw.get("name")
    if name is not None and not _is_non_blank_str(name):
        raise PlanError("workflow.name must be non-empty string when provided")

    raw_tasks = raw.get("tasks")
    if not isinstance(raw_tasks, list):
        raise PlanError("workflow.tasks must be a list")

    return WorkflowSpec(
        name=name,
        defaults=_parse_defaults(raw.get("defaults")),
        tasks=[_parse_task(task) for task in raw_tasks],
    )


def load_workflow(path: Path) -> WorkflowSpec:
    """Read a workflow YAML file.

    Only per-file problems raise here; graph problems (duplicates, missing
    references, cycles) are left to ``validate_workflow``.
    """
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise PlanError(f"workflow file not found: {path}") from exc
    except UnicodeError as exc:
        raise PlanError(f"failed to decode workflow file as utf-8: {path}") from exc
    except OSError as exc:
        raise PlanError(f"failed to read workflow file: {path}") from exc

    try:
        raw = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise PlanError(f"failed to parse yaml: {exc}") from exc
    return parse_workflow(raw)
