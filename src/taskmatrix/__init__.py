"""Cooperative asyncio task orchestrator."""

from .core.errors import (
    ExecutionError,
    TaskMatrixError,
    TaskNotFoundError,
    TaskTimeoutError,
    ValidationError,
)
from .core.events import Event, EventName
from .ops.bootstrap import bootstrap_task_matrix
from .ops.matrix import Collaborators, TaskMatrix
from .tasks.task_models import (
    ControlOverride,
    EmotionalContext,
    Mood,
    PriorityClass,
    TaskContext,
    TaskDefinition,
)

__all__ = [
    "Collaborators",
    "ControlOverride",
    "EmotionalContext",
    "Event",
    "EventName",
    "ExecutionError",
    "Mood",
    "PriorityClass",
    "TaskContext",
    "TaskDefinition",
    "TaskMatrix",
    "TaskMatrixError",
    "TaskNotFoundError",
    "TaskTimeoutError",
    "ValidationError",
    "bootstrap_task_matrix",
]
