# src/taskmatrix/core/errors.py

from __future__ import annotations

"""
Error taxonomy.

- ValidationError: a task definition or state update is malformed (e.g. no executable).
- TaskTimeoutError: a task body did not settle within its timeout.
- ExecutionError: a task body raised, or one of its condition predicates raised.
- TaskNotFoundError: an operation addressed a task id that is not registered.
"""


class TaskMatrixError(Exception):
    """Base class for all task matrix errors."""


class ValidationError(TaskMatrixError, ValueError):
    pass


class TaskNotFoundError(TaskMatrixError, KeyError):
    def __init__(self, task_id: str) -> None:
        super().__init__(task_id)
        self.task_id = task_id

    def __str__(self) -> str:
        return f"Task not registered: {self.task_id}"


class TaskTimeoutError(TaskMatrixError, TimeoutError):
    def __init__(self, task_id: str, timeout: float) -> None:
        super().__init__(f"Task {task_id} timed out after {timeout:.3f}s")
        self.task_id = task_id
        self.timeout = timeout


class ExecutionError(TaskMatrixError):
    def __init__(self, task_id: str, message: str) -> None:
        super().__init__(f"Task {task_id}: {message}")
        self.task_id = task_id
