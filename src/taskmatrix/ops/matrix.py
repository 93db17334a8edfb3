# src/taskmatrix/ops/matrix.py

from __future__ import annotations

"""
TaskMatrix: the orchestrator.

Owns the task registry, the orchestrator-wide emotional defaults, the event
channel, the polling tick loop and the heartbeat monitor. Everything runs on
one asyncio event loop; no locking is done, so all public methods must be
called from that loop's thread.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..core.events import Event, EventChannel, EventName, Listener
from ..tasks.heartbeat import HeartbeatMonitor
from ..tasks.task_models import (
    DEFAULT_TASK_TIMEOUT,
    EmotionalContext,
    TaskContext,
    TaskDefinition,
)
from ..tasks.task_registry import TaskRegistry, normalize_task
from ..tasks.task_scheduler import run_tick

logger = logging.getLogger(__name__)

PluginInstaller = Callable[["TaskMatrix"], Any]


@dataclass(slots=True)
class Collaborators:
    """Handles the matrix passes through to task bodies. All optional."""

    kernel: Any = None
    llm: Any = None
    patterns: Any = None
    consciousness: Any = None
    codegen: Any = None
    memory: Any = None
    trading: Any = None
    extras: dict[str, Any] = field(default_factory=dict)


class TaskMatrix:
    def __init__(
            self,
            collaborators: Collaborators | None = None,
            *,
            tick_seconds: float = 0.1,
            heartbeat_seconds: float = 1.0,
            default_timeout: float = DEFAULT_TASK_TIMEOUT,
            default_emotional: EmotionalContext | Mapping[str, Any] | None = None,
            clock: Callable[[], float] = time.time,
    ) -> None:
        if tick_seconds <= 0:
            raise ValueError("tick_seconds must be positive")
        if default_timeout <= 0:
            raise ValueError("default_timeout must be positive")

        c = collaborators or Collaborators()
        self.events = EventChannel()
        self.tick_seconds = float(tick_seconds)
        self.default_timeout = float(default_timeout)
        self._clock = clock
        self._registry = TaskRegistry()
        self._running = False
        self._generation = 0
        self._loop_task: asyncio.Task | None = None

        self._default_emotional = EmotionalContext().merged(default_emotional)
        self.context = TaskContext(
            kernel=c.kernel,
            llm=c.llm,
            patterns=c.patterns,
            consciousness=c.consciousness,
            codegen=c.codegen,
            memory=c.memory,
            trading=c.trading,
            extras=dict(c.extras),
            ops=self,
            emotional=self._default_emotional,
        )
        self._heartbeat = HeartbeatMonitor(
            self.events,
            kernel_getter=lambda: self.context.kernel,
            period=heartbeat_seconds,
            clock=clock,
        )

    # ---- Events ----

    def on(self, name: str, listener: Listener) -> None:
        self.events.on(name, listener)

    def off(self, name: str, listener: Listener) -> None:
        self.events.off(name, listener)

    def once(self, name: str, listener: Listener) -> None:
        self.events.once(name, listener)

    def emit(self, name: str, /, **data: Any) -> Event:
        return self.events.emit(name, **data)

    # ---- State ----

    @property
    def running(self) -> bool:
        return self._running

    @property
    def heartbeat_seconds(self) -> float:
        return self._heartbeat.period

    @property
    def last_heartbeat(self) -> float | None:
        return self._heartbeat.last_heartbeat

    @property
    def default_emotional(self) -> EmotionalContext:
        return self._default_emotional

    # ---- Registry ----

    def register_task(self, task: TaskDefinition | Mapping[str, Any]) -> TaskDefinition:
        normalized = normalize_task(
            task,
            default_emotional=self._default_emotional,
            default_timeout=self.default_timeout,
        )
        self._registry.put(normalized)
        logger.info("Registered task %s (priority=%s)", normalized.id, normalized.control.priority)
        self.emit(EventName.TASK_REGISTERED, id=normalized.id)
        return normalized.snapshot()

    def unregister_task(self, task_id: str) -> None:
        removed = self._registry.remove(task_id)
        if removed is not None:
            logger.info("Unregistered task %s", task_id)
        self.emit(EventName.TASK_UNREGISTERED, id=task_id)

    def list_tasks(self) -> list[TaskDefinition]:
        return self._registry.snapshot()

    def get_task(self, task_id: str) -> TaskDefinition | None:
        task = self._registry.get(task_id)
        return task.snapshot() if task is not None else None

    # ---- Emotional / control state ----

    def update_emotional_state(self, partial: Mapping[str, Any] | EmotionalContext) -> EmotionalContext:
        """
        Merge into the orchestrator-wide default and republish it on the shared context.

        Tasks already registered keep their registration-time snapshot.
        """
        self._default_emotional = self._default_emotional.merged(partial)
        self.context.emotional = self._default_emotional
        self.emit(EventName.EMOTIONAL_UPDATED, emotional=self._default_emotional)
        return self._default_emotional

    def update_task_emotional_state(
            self,
            task_id: str,
            partial: Mapping[str, Any] | EmotionalContext,
    ) -> EmotionalContext:
        task = self._registry.require(task_id)
        task.emotional = task.emotional.merged(partial)
        self.emit(EventName.EMOTIONAL_UPDATED, id=task_id, emotional=task.emotional)
        return task.emotional

    def override_task_control(self, task_id: str, partial: Mapping[str, Any]) -> TaskDefinition:
        task = self._registry.require(task_id)
        task.control.apply(partial)
        # Keep the top-level mirrors in step with the control block.
        task.enabled = task.control.enabled
        task.priority = task.control.priority
        self.emit(EventName.TASK_CONTROL_UPDATED, id=task_id, control=dict(partial))
        return task.snapshot()

    # ---- Plugins ----

    def plugin(self, name: str, installer: PluginInstaller) -> None:
        installer(self)
        logger.info("Plugin registered: %s", name)
        self.emit(EventName.PLUGIN_REGISTERED, name=name)

    # ---- Lifecycle ----

    def start(self) -> None:
        """Start the tick loop and heartbeat. Must be called with an event loop running."""
        if self._running:
            return
        loop = asyncio.get_running_loop()
        self._running = True
        self._generation += 1
        self._heartbeat.start()
        self.emit(EventName.MATRIX_STARTED)
        self._loop_task = loop.create_task(self._loop(self._generation), name="taskmatrix-loop")
        logger.info("TaskMatrix started (%d tasks)", len(self._registry))

    def stop(self) -> None:
        """
        Stop scheduling. An in-flight task run is not interrupted; the loop
        exits before starting another pass. The heartbeat stops immediately.
        """
        was_running = self._running
        self._running = False
        self._heartbeat.stop()
        if was_running:
            logger.info("TaskMatrix stopping")
        self.emit(EventName.MATRIX_STOPPED)

    async def join(self) -> None:
        """Wait until the tick loop has exited."""
        task = self._loop_task
        if task is not None:
            await asyncio.shield(task)

    def heartbeat(self) -> float:
        """Emit one heartbeat immediately (the monitor also calls this on its own)."""
        return self._heartbeat.beat()

    async def run_tick(self) -> list[str]:
        return await run_tick(self._registry, self.context, self.events, now=self._clock())

    async def _loop(self, generation: int) -> None:
        # A stop() + start() while a pass is in flight must not leave two loops running.
        while self._running and self._generation == generation:
            try:
                await self.run_tick()
            except Exception:
                logger.exception("Tick failed")
            await asyncio.sleep(self.tick_seconds)
        logger.info("TaskMatrix loop exited")
