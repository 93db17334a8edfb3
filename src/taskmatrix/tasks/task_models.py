# src/taskmatrix/tasks/task_models.py

from __future__ import annotations

import math
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, fields, replace
from enum import StrEnum
from numbers import Real
from typing import TYPE_CHECKING, Any

from ..core.errors import ValidationError

if TYPE_CHECKING:
    from ..ops.matrix import TaskMatrix

DEFAULT_TASK_TIMEOUT = 30.0

TaskRunner = Callable[["TaskContext"], Any]
TaskPredicate = Callable[["TaskContext"], "bool | Awaitable[bool]"]


class Mood(StrEnum):
    FOCUSED = "focused"
    CREATIVE = "creative"
    ANALYTICAL = "analytical"
    ADAPTIVE = "adaptive"
    CUSTOM = "custom"


class PriorityClass(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class SkipReason(StrEnum):
    CONTROL_CONDITIONS_NOT_MET = "control_conditions_not_met"


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def _as_conditions(value: Any) -> list[TaskPredicate]:
    if value is None:
        return []
    if callable(value) or isinstance(value, (str, bytes)):
        raise ValidationError("control conditions must be a sequence of callables")
    try:
        return list(value)
    except TypeError as e:
        raise ValidationError("control conditions must be a sequence of callables") from e


@dataclass(slots=True, frozen=True)
class EmotionalContext:
    """
    Informational weighting attached to a task.

    Immutable: updates produce a new snapshot via merged().
    """

    resonance: float = 0.5
    mood: Mood = Mood.FOCUSED
    priority: PriorityClass = PriorityClass.MEDIUM
    custom_mood: str | None = None
    tags: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        try:
            resonance = float(self.resonance)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"resonance must be a number, got {self.resonance!r}") from e
        if not 0.0 <= resonance <= 1.0:
            raise ValidationError(f"resonance must be within [0, 1], got {resonance}")
        try:
            mood = Mood(self.mood)
            priority = PriorityClass(self.priority)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "resonance", resonance)
        object.__setattr__(self, "mood", mood)
        object.__setattr__(self, "priority", priority)
        object.__setattr__(self, "tags", tuple(self.tags or ()))

    def merged(self, partial: Mapping[str, Any] | EmotionalContext | None) -> EmotionalContext:
        if partial is None:
            return self
        if isinstance(partial, EmotionalContext):
            partial = {f.name: getattr(partial, f.name) for f in fields(partial)}
        unknown = set(partial) - {f.name for f in fields(self)}
        if unknown:
            raise ValidationError(f"Unknown emotional fields: {sorted(unknown)}")
        return replace(self, **dict(partial))


@dataclass(slots=True)
class ControlOverride:
    """
    Per-task execution policy.

    enabled, priority and timeout left as None are inherited at registration:
    the owning task's enabled/priority and the matrix default timeout.
    max_retries extra attempts are made within the same tick, each one
    bounded by timeout and separated by retry_delay seconds.
    """

    enabled: bool | None = None
    priority: float | None = None
    max_retries: int = 0
    retry_delay: float = 0.0
    timeout: float | None = None
    fallback: TaskRunner | None = None
    conditions: list[TaskPredicate] = field(default_factory=list)

    def validate(self) -> None:
        if not isinstance(self.enabled, bool):
            raise ValidationError(f"enabled must be a bool, got {self.enabled!r}")
        if not _is_number(self.priority):
            raise ValidationError(f"priority must be a finite number, got {self.priority!r}")
        if not _is_number(self.timeout) or self.timeout <= 0:
            raise ValidationError(f"timeout must be positive, got {self.timeout!r}")
        if not isinstance(self.max_retries, int) or isinstance(self.max_retries, bool) or self.max_retries < 0:
            raise ValidationError(f"max_retries must be an int >= 0, got {self.max_retries!r}")
        if not _is_number(self.retry_delay) or self.retry_delay < 0:
            raise ValidationError(f"retry_delay must be >= 0, got {self.retry_delay!r}")
        if self.fallback is not None and not callable(self.fallback):
            raise ValidationError("fallback must be callable")
        for cond in self.conditions:
            if not callable(cond):
                raise ValidationError("control conditions must be callable")

    def apply(self, partial: Mapping[str, Any]) -> None:
        """Merge partial into self in place; keys left out keep their values."""
        unknown = set(partial) - {f.name for f in fields(self)}
        if unknown:
            raise ValidationError(f"Unknown control fields: {sorted(unknown)}")
        previous = {f.name: getattr(self, f.name) for f in fields(self)}
        try:
            for key, value in partial.items():
                if key == "conditions":
                    value = _as_conditions(value)
                setattr(self, key, value)
            self.validate()
        except ValidationError:
            for key, value in previous.items():
                setattr(self, key, value)
            raise


@dataclass(slots=True)
class TaskDefinition:
    id: str
    run: TaskRunner | None = None
    name: str | None = None
    description: str | None = None
    condition: TaskPredicate | None = None
    interval: float | None = None
    priority: float = 0
    last_run: float | None = None
    enabled: bool = True
    plugin: str | None = None
    emotional: EmotionalContext | Mapping[str, Any] | None = None
    control: ControlOverride | Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        if not self.id or not str(self.id).strip():
            raise ValidationError("Task id is required")
        if self.run is None or not callable(self.run):
            raise ValidationError(f"Task {self.id} has no executable")
        if self.condition is not None and not callable(self.condition):
            raise ValidationError(f"Task {self.id}: condition must be callable")
        if self.interval is not None and float(self.interval) < 0:
            raise ValidationError(f"Task {self.id}: interval must be >= 0")

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> TaskDefinition:
        known = {f.name for f in fields(cls)}
        unknown = set(raw) - known
        if unknown:
            raise ValidationError(f"Unknown task fields: {sorted(unknown)}")
        if "id" not in raw:
            raise ValidationError("Task id is required")
        return cls(**dict(raw))

    def snapshot(self) -> TaskDefinition:
        """Detached copy: mutating it does not touch the registry."""
        control = self.control
        if isinstance(control, ControlOverride):
            control = replace(control, conditions=list(control.conditions))
        return replace(self, control=control)


@dataclass(slots=True)
class TaskContext:
    """Shared value passed to every task body, condition and fallback."""

    kernel: Any = None
    llm: Any = None
    patterns: Any = None
    consciousness: Any = None
    codegen: Any = None
    memory: Any = None
    trading: Any = None
    extras: dict[str, Any] = field(default_factory=dict)
    ops: TaskMatrix | None = None
    emotional: EmotionalContext = field(default_factory=EmotionalContext)
    control: ControlOverride | None = None

    def for_task(self, task: TaskDefinition) -> TaskContext:
        return replace(self, emotional=task.emotional, control=task.control)
