# tests/test_task_registry.py

from __future__ import annotations

import pytest

from taskmatrix.core.errors import TaskNotFoundError, ValidationError
from taskmatrix.core.events import EventName
from taskmatrix.tasks.task_models import (
    DEFAULT_TASK_TIMEOUT,
    ControlOverride,
    EmotionalContext,
    Mood,
    PriorityClass,
    TaskDefinition,
)


async def _noop(ctx) -> None:
    return None


def test_register_and_list_tasks(ops, recorder) -> None:
    ops.register_task(TaskDefinition(id="a", run=_noop))
    ops.register_task({"id": "b", "run": _noop, "priority": 3})

    ids = [t.id for t in ops.list_tasks()]
    assert ids == ["a", "b"]
    assert recorder.data(EventName.TASK_REGISTERED, "id") == ["a", "b"]

    b = ops.get_task("b")
    assert b is not None
    assert b.control.priority == 3
    assert b.control.enabled is True
    assert b.control.timeout == ops.default_timeout


def test_registration_without_executable_fails(ops) -> None:
    with pytest.raises(ValidationError):
        TaskDefinition(id="broken")
    with pytest.raises(ValidationError):
        ops.register_task({"id": "broken"})
    with pytest.raises(ValidationError):
        ops.register_task({"id": "broken", "run": "not callable"})
    assert ops.list_tasks() == []


def test_list_tasks_is_a_snapshot(ops) -> None:
    ops.register_task(TaskDefinition(id="a", run=_noop))

    listed = ops.list_tasks()
    listed[0].last_run = 123.0
    listed[0].control.enabled = False
    listed.clear()

    task = ops.get_task("a")
    assert task is not None
    assert task.last_run is None
    assert task.control.enabled is True
    assert len(ops.list_tasks()) == 1


def test_unregister_is_idempotent(ops, recorder) -> None:
    ops.register_task(TaskDefinition(id="a", run=_noop))
    ops.unregister_task("a")
    ops.unregister_task("a")
    ops.unregister_task("never-existed")

    assert ops.list_tasks() == []
    assert recorder.data(EventName.TASK_UNREGISTERED, "id") == ["a", "a", "never-existed"]


def test_disabled_task_keeps_disabled_control(ops) -> None:
    task = ops.register_task(TaskDefinition(id="a", run=_noop, enabled=False, priority=7))
    assert task.control.enabled is False
    assert task.control.priority == 7


def test_emotional_context_merges_on_top_of_defaults(ops) -> None:
    ops.update_emotional_state({"mood": Mood.CREATIVE, "resonance": 0.9})
    task = ops.register_task(
        TaskDefinition(id="a", run=_noop, emotional={"priority": PriorityClass.HIGH, "tags": ["x"]})
    )

    assert task.emotional.mood is Mood.CREATIVE
    assert task.emotional.resonance == pytest.approx(0.9)
    assert task.emotional.priority is PriorityClass.HIGH
    assert task.emotional.tags == ("x",)


def test_emotional_update_does_not_touch_registered_tasks(ops, recorder) -> None:
    ops.register_task(TaskDefinition(id="before", run=_noop))
    ops.update_emotional_state({"mood": "analytical"})
    ops.register_task(TaskDefinition(id="after", run=_noop))

    assert ops.get_task("before").emotional.mood is Mood.FOCUSED
    assert ops.get_task("after").emotional.mood is Mood.ANALYTICAL
    assert ops.context.emotional.mood is Mood.ANALYTICAL
    assert len(recorder.of(EventName.EMOTIONAL_UPDATED)) == 1


def test_update_task_emotional_state(ops) -> None:
    ops.register_task(TaskDefinition(id="a", run=_noop))
    updated = ops.update_task_emotional_state("a", {"mood": Mood.CUSTOM, "custom_mood": "curious"})

    assert updated.mood is Mood.CUSTOM
    assert ops.get_task("a").emotional.custom_mood == "curious"
    with pytest.raises(TaskNotFoundError):
        ops.update_task_emotional_state("missing", {"mood": Mood.FOCUSED})


def test_emotional_context_validation() -> None:
    with pytest.raises(ValidationError):
        EmotionalContext(resonance=1.5)
    with pytest.raises(ValidationError):
        EmotionalContext(mood="sleepy")
    with pytest.raises(ValidationError):
        EmotionalContext().merged({"volume": 11})


def test_override_task_control_preserves_omitted_fields(ops, recorder) -> None:
    async def fallback(ctx) -> None:
        return None

    ops.register_task(TaskDefinition(id="a", run=_noop, priority=5, enabled=False))
    updated = ops.override_task_control("a", {"timeout": 2.5, "fallback": fallback})

    assert updated.control.enabled is False
    assert updated.control.priority == 5
    assert updated.control.timeout == 2.5
    assert updated.control.fallback is fallback

    ops.override_task_control("a", {"enabled": True, "priority": 9})
    task = ops.get_task("a")
    assert task.control.enabled is True
    assert task.enabled is True
    assert task.priority == 9
    assert task.control.timeout == 2.5

    assert recorder.data(EventName.TASK_CONTROL_UPDATED, "id") == ["a", "a"]


def test_override_task_control_rejects_bad_values(ops) -> None:
    ops.register_task(TaskDefinition(id="a", run=_noop, control=ControlOverride(timeout=3.0)))

    with pytest.raises(ValidationError):
        ops.override_task_control("a", {"timeout": 0})
    with pytest.raises(ValidationError):
        ops.override_task_control("a", {"bogus": 1})
    with pytest.raises(TaskNotFoundError):
        ops.override_task_control("missing", {"enabled": False})


@pytest.mark.parametrize(
    "partial",
    [
        {"priority": None},
        {"priority": "high"},
        {"priority": float("nan")},
        {"enabled": None},
        {"enabled": "yes"},
        {"max_retries": None},
        {"retry_delay": "soon"},
        {"timeout": None},
        {"conditions": 5},
    ],
)
def test_override_task_control_rejects_bad_values_and_keeps_previous(ops, partial) -> None:
    ops.register_task(TaskDefinition(id="a", run=_noop, priority=4, control={"max_retries": 1}))

    with pytest.raises(ValidationError):
        ops.override_task_control("a", {"timeout": 9.0, **partial})

    task = ops.get_task("a")
    assert task.control.priority == 4
    assert task.control.enabled is True
    assert task.control.timeout == DEFAULT_TASK_TIMEOUT
    assert task.control.max_retries == 1
    assert task.control.conditions == []

    # A rejected update leaves the previous control intact.
    assert ops.get_task("a").control.timeout == 3.0


def test_plugin_installer_receives_orchestrator(ops, recorder) -> None:
    seen = []

    def installer(matrix) -> None:
        seen.append(matrix)
        matrix.register_task(TaskDefinition(id="from-plugin", run=_noop, plugin="ext"))

    ops.plugin("ext", installer)

    assert seen == [ops]
    assert ops.get_task("from-plugin").plugin == "ext"
    assert recorder.data(EventName.PLUGIN_REGISTERED, "name") == ["ext"]


def test_partial_control_override_inherits_task_enabled_and_priority(ops) -> None:
    urgent = ops.register_task(
        TaskDefinition(id="urgent", run=_noop, priority=10, control=ControlOverride(timeout=2.0))
    )
    off = ops.register_task(
        TaskDefinition(id="off", run=_noop, enabled=False, control=ControlOverride(max_retries=1))
    )

    assert urgent.control.priority == 10
    assert urgent.control.enabled is True
    assert urgent.control.timeout == 2.0

    assert off.control.enabled is False
    assert off.enabled is False
    assert off.control.priority == 0
    assert off.control.timeout == DEFAULT_TASK_TIMEOUT
    assert off.control.max_retries == 1


def test_explicit_control_fields_win_over_task_values(ops) -> None:
    task = ops.register_task(
        TaskDefinition(
            id="a",
            run=_noop,
            priority=10,
            enabled=False,
            control=ControlOverride(enabled=True, priority=2),
        )
    )

    assert task.control.enabled is True
    assert task.control.priority == 2
    assert task.enabled is True
    assert task.priority == 2


def test_mapping_control_with_none_inherits(ops) -> None:
    task = ops.register_task({"id": "a", "run": _noop, "priority": 6, "control": {"priority": None}})
    assert task.control.priority == 6
