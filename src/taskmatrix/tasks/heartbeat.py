# src/taskmatrix/tasks/heartbeat.py

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from typing import Any

from ..core.events import EventChannel, EventName

logger = logging.getLogger(__name__)


class HeartbeatMonitor:
    """
    Periodic liveness signal, independent of the task tick loop.

    Each beat records a timestamp, emits "heartbeat" and, if the kernel has a
    callable self_heal, fires it without waiting for it.
    """

    def __init__(
            self,
            events: EventChannel,
            *,
            kernel_getter: Callable[[], Any],
            period: float = 1.0,
            clock: Callable[[], float] = time.time,
    ) -> None:
        if period <= 0:
            raise ValueError("heartbeat period must be positive")
        self._events = events
        self._kernel_getter = kernel_getter
        self._clock = clock
        self._task: asyncio.Task | None = None
        self.period = float(period)
        self.last_heartbeat: float | None = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.active:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="taskmatrix-heartbeat")

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.period)
            self.beat()

    def beat(self) -> float:
        now = self._clock()
        self.last_heartbeat = now
        self._events.emit(EventName.HEARTBEAT, timestamp=now)
        self._trigger_self_heal()
        return now

    def _trigger_self_heal(self) -> None:
        kernel = self._kernel_getter()
        self_heal = getattr(kernel, "self_heal", None)
        if not callable(self_heal):
            return
        try:
            result = self_heal()
        except Exception:
            logger.exception("kernel.self_heal failed")
            return
        if inspect.isawaitable(result):
            fut = asyncio.ensure_future(result)
            fut.add_done_callback(_log_self_heal_failure)


def _log_self_heal_failure(fut: asyncio.Future) -> None:
    if fut.cancelled():
        return
    exc = fut.exception()
    if exc is not None:
        logger.error("kernel.self_heal failed", exc_info=exc)
