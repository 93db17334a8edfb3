# src/taskmatrix/tasks/task_registry.py

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from dataclasses import fields, replace
from typing import Any

from ..core.errors import TaskNotFoundError, ValidationError
from .task_models import (
    DEFAULT_TASK_TIMEOUT,
    ControlOverride,
    EmotionalContext,
    TaskDefinition,
)

logger = logging.getLogger(__name__)

INHERITED_CONTROL_FIELDS = frozenset({"enabled", "priority", "timeout"})


def normalize_task(
        raw: TaskDefinition | Mapping[str, Any],
        *,
        default_emotional: EmotionalContext,
        default_timeout: float = DEFAULT_TASK_TIMEOUT,
) -> TaskDefinition:
    """
    Build the registry copy of a task definition.

    - emotional: task values merged on top of the orchestrator defaults (snapshot)
    - control: task values merged on top of
      {enabled: task.enabled, priority: task.priority, timeout: default_timeout};
      inheritable fields given as None keep those base values
    """
    if isinstance(raw, TaskDefinition):
        task = raw
    elif isinstance(raw, Mapping):
        task = TaskDefinition.from_mapping(raw)
    else:
        raise ValidationError(f"Unsupported task definition type: {type(raw).__name__}")

    emotional = default_emotional.merged(task.emotional)

    control = ControlOverride(
        enabled=task.enabled is not False,
        priority=task.priority or 0,
        timeout=default_timeout,
    )
    given = task.control
    if isinstance(given, ControlOverride):
        given = {f.name: getattr(given, f.name) for f in fields(given)}
    if given:
        given = {k: v for k, v in given.items() if not (k in INHERITED_CONTROL_FIELDS and v is None)}
    if given:
        control.apply(given)
    else:
        control.validate()

    return replace(
        task,
        enabled=control.enabled,
        priority=control.priority,
        emotional=emotional,
        control=control,
    )


class TaskRegistry:
    """Insertion-ordered id -> TaskDefinition mapping."""

    def __init__(self) -> None:
        self._tasks: dict[str, TaskDefinition] = {}

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[TaskDefinition]:
        return iter(list(self._tasks.values()))

    def put(self, task: TaskDefinition) -> bool:
        """Store task; returns True if it replaced an existing id."""
        replaced = task.id in self._tasks
        if replaced:
            # Re-registering keeps the original slot in iteration order.
            logger.info("Task %s re-registered; replacing previous definition", task.id)
        self._tasks[task.id] = task
        return replaced

    def remove(self, task_id: str) -> TaskDefinition | None:
        return self._tasks.pop(task_id, None)

    def get(self, task_id: str) -> TaskDefinition | None:
        return self._tasks.get(task_id)

    def require(self, task_id: str) -> TaskDefinition:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def snapshot(self) -> list[TaskDefinition]:
        return [t.snapshot() for t in self._tasks.values()]
