# src/taskmatrix/ops/bootstrap.py

"""
Composition helpers.

bootstrap_task_matrix() builds a TaskMatrix with the liveness task already
registered. It never starts the matrix: callers own the lifecycle.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any

from ..config import Settings
from ..tasks.task_models import ControlOverride, PriorityClass, TaskContext, TaskDefinition
from .matrix import Collaborators, TaskMatrix

logger = logging.getLogger(__name__)

HEARTBEAT_TASK_ID = "heartbeat"
HEARTBEAT_TASK_PRIORITY = 100
HEARTBEAT_TASK_TIMEOUT = 5.0


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def _kernel_heartbeat(ctx: TaskContext) -> Any:
    beat = getattr(ctx.kernel, "heartbeat", None)
    if not callable(beat):
        return None
    return await _maybe_await(beat())


async def _kernel_recover(ctx: TaskContext) -> Any:
    recover = getattr(ctx.kernel, "recover", None)
    if not callable(recover):
        logger.warning("Kernel heartbeat failed and kernel has no recover(); nothing to do")
        return None
    logger.info("Kernel heartbeat failed; attempting recovery")
    return await _maybe_await(recover())


def heartbeat_task(*, interval: float = 1.0) -> TaskDefinition:
    return TaskDefinition(
        id=HEARTBEAT_TASK_ID,
        name="Kernel heartbeat",
        description="Pings the kernel and attempts recovery when the ping fails",
        run=_kernel_heartbeat,
        interval=interval,
        priority=HEARTBEAT_TASK_PRIORITY,
        emotional={"priority": PriorityClass.CRITICAL},
        control=ControlOverride(
            timeout=HEARTBEAT_TASK_TIMEOUT,
            fallback=_kernel_recover,
        ),
    )


def bootstrap_task_matrix(
        collaborators: Collaborators | None = None,
        *,
        settings: Settings | None = None,
        **options: Any,
) -> TaskMatrix:
    """
    Build a TaskMatrix wired with collaborators and the default "heartbeat" task.

    Scheduler timings come from settings when given; explicit keyword options
    (tick_seconds, heartbeat_seconds, default_timeout, ...) win over settings.
    The returned matrix is NOT started.
    """
    if settings is not None:
        options.setdefault("tick_seconds", settings.tick_seconds)
        options.setdefault("heartbeat_seconds", settings.heartbeat_seconds)
        options.setdefault("default_timeout", settings.default_task_timeout_seconds)

    ops = TaskMatrix(collaborators, **options)
    ops.register_task(heartbeat_task(interval=ops.heartbeat_seconds))
    return ops
