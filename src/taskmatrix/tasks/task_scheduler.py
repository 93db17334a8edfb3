# src/taskmatrix/tasks/task_scheduler.py

from __future__ import annotations

"""
Execution engine.

One tick:
- orders registered tasks by control priority (highest first, stable),
- gates each task (enabled -> interval -> condition -> control conditions),
- runs it raced against its timeout, retrying up to max_retries,
- on final failure runs the fallback (if any) and always reports the error.

The polling loop itself lives in TaskMatrix; this module only knows how to
run a single pass.
"""

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any

from ..core.errors import ExecutionError, TaskTimeoutError
from ..core.events import EventChannel, EventName
from .task_models import SkipReason, TaskContext, TaskDefinition, TaskPredicate, TaskRunner
from .task_registry import TaskRegistry

logger = logging.getLogger(__name__)


class Gate(str, Enum):
    PASS = "pass"
    DISABLED = "disabled"
    INTERVAL = "interval"
    CONDITION = "condition"
    CONTROL_CONDITIONS = "control_conditions"
    ERROR = "error"


async def _evaluate(predicate: TaskPredicate, ctx: TaskContext) -> bool:
    result = predicate(ctx)
    if inspect.isawaitable(result):
        result = await result
    return bool(result)


async def run_bounded(fn: TaskRunner, ctx: TaskContext, *, task_id: str, timeout: float) -> Any:
    """
    Call fn(ctx) and race its result against a timer.

    Synchronous callables settle inline. For awaitables, the loser of the race
    (the still-pending body) is cancelled before TaskTimeoutError is raised.
    """
    result = fn(ctx)
    if not inspect.isawaitable(result):
        return result

    fut = asyncio.ensure_future(result)
    try:
        done, _ = await asyncio.wait({fut}, timeout=timeout)
    finally:
        if not fut.done():
            fut.cancel()

    if not done:
        raise TaskTimeoutError(task_id, timeout)
    if fut.cancelled():
        raise ExecutionError(task_id, "execution was cancelled")
    return fut.result()


async def check_gates(
        task: TaskDefinition,
        ctx: TaskContext,
        events: EventChannel,
        *,
        now: float,
) -> Gate:
    control = task.control

    if not control.enabled:
        return Gate.DISABLED

    if task.interval and task.last_run is not None and now - task.last_run < task.interval:
        return Gate.INTERVAL

    try:
        if task.condition is not None and not await _evaluate(task.condition, ctx):
            return Gate.CONDITION

        if control.conditions:
            results = [await _evaluate(cond, ctx) for cond in control.conditions]
            if not all(results):
                events.emit(
                    EventName.TASK_SKIPPED,
                    id=task.id,
                    reason=SkipReason.CONTROL_CONDITIONS_NOT_MET.value,
                )
                return Gate.CONTROL_CONDITIONS
    except Exception as e:
        logger.exception("Condition check failed task_id=%s", task.id)
        err = ExecutionError(task.id, f"condition raised {type(e).__name__}: {e}")
        err.__cause__ = e
        events.emit(EventName.TASK_ERROR, id=task.id, error=err)
        return Gate.ERROR

    return Gate.PASS


async def execute_task(
        task: TaskDefinition,
        ctx: TaskContext,
        events: EventChannel,
        *,
        now: float,
) -> bool:
    """
    Run one gated task. Returns True on success.

    Failures never propagate: they are reported as task:error (after the
    fallback, if one is configured).
    """
    control = task.control
    timeout = float(control.timeout)
    attempts = 1 + max(0, int(control.max_retries or 0))
    last_error: Exception | None = None

    for attempt in range(1, attempts + 1):
        try:
            result = await run_bounded(task.run, ctx, task_id=task.id, timeout=timeout)
        except TaskTimeoutError as e:
            last_error = e
            logger.warning("Task %s timed out after %.3fs (attempt %d/%d)", task.id, timeout, attempt, attempts)
        except Exception as e:
            last_error = ExecutionError(task.id, f"{type(e).__name__}: {e}")
            last_error.__cause__ = e
            logger.warning("Task %s failed (attempt %d/%d): %s", task.id, attempt, attempts, e, exc_info=True)
        else:
            task.last_run = now
            logger.debug("Task %s ran", task.id)
            events.emit(EventName.TASK_RAN, id=task.id, result=result)
            return True

        if attempt < attempts:
            events.emit(EventName.TASK_RETRY, id=task.id, attempt=attempt, error=last_error)
            if control.retry_delay:
                await asyncio.sleep(float(control.retry_delay))

    assert last_error is not None

    if control.fallback is not None:
        try:
            fallback_result = await run_bounded(control.fallback, ctx, task_id=task.id, timeout=timeout)
        except Exception as fe:
            logger.exception("Fallback failed task_id=%s", task.id)
            events.emit(EventName.TASK_FALLBACK_FAILED, id=task.id, error=fe, cause=last_error)
        else:
            logger.info("Fallback executed task_id=%s", task.id)
            events.emit(EventName.TASK_FALLBACK_EXECUTED, id=task.id, result=fallback_result, cause=last_error)

    # Fallback is remediation only; the failure is always reported.
    events.emit(EventName.TASK_ERROR, id=task.id, error=last_error)
    return False


async def run_tick(
        registry: TaskRegistry,
        shared_ctx: TaskContext,
        events: EventChannel,
        *,
        now: float,
) -> list[str]:
    """
    Single pass over the registry. Returns ids of tasks that were executed
    (successfully or not), in execution order.
    """
    ordered = sorted(registry, key=lambda t: -float(t.control.priority))
    executed: list[str] = []

    for task in ordered:
        # Unregistered (or replaced) by an earlier task in this pass.
        if registry.get(task.id) is not task:
            continue

        ctx = shared_ctx.for_task(task)
        gate = await check_gates(task, ctx, events, now=now)
        if gate is not Gate.PASS:
            continue

        executed.append(task.id)
        await execute_task(task, ctx, events, now=now)

    return executed
