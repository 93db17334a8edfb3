# src/taskmatrix/core/events.py

from __future__ import annotations

"""
Event channel.

A plain observer list keyed by event name. Events are published whether or
not anyone listens; listener failures are logged and never reach the emitter.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

WILDCARD = "*"


class EventName(StrEnum):
    TASK_REGISTERED = "task:registered"
    TASK_UNREGISTERED = "task:unregistered"
    TASK_RAN = "task:ran"
    TASK_ERROR = "task:error"
    TASK_SKIPPED = "task:skipped"
    TASK_RETRY = "task:retry"
    TASK_FALLBACK_EXECUTED = "task:fallback:executed"
    TASK_FALLBACK_FAILED = "task:fallback:failed"
    TASK_CONTROL_UPDATED = "task:control:updated"
    EMOTIONAL_UPDATED = "emotional:updated"
    HEARTBEAT = "heartbeat"
    MATRIX_STARTED = "matrix:started"
    MATRIX_STOPPED = "matrix:stopped"
    PLUGIN_REGISTERED = "plugin:registered"


@dataclass(slots=True, frozen=True)
class Event:
    name: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


Listener = Callable[[Event], Any]


class EventChannel:
    """Name-keyed listener registry. Use "*" to receive every event."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, name: str, listener: Listener) -> None:
        self._listeners.setdefault(str(name), []).append(listener)

    def off(self, name: str, listener: Listener) -> None:
        listeners = self._listeners.get(str(name))
        if not listeners:
            return
        try:
            listeners.remove(listener)
        except ValueError:
            return
        if not listeners:
            del self._listeners[str(name)]

    def once(self, name: str, listener: Listener) -> None:
        def _wrapper(event: Event) -> Any:
            self.off(name, _wrapper)
            return listener(event)

        self.on(name, _wrapper)

    def listener_count(self, name: str) -> int:
        return len(self._listeners.get(str(name), []))

    def emit(self, name: str, /, **data: Any) -> Event:
        event = Event(name=str(name), data=data)
        logger.debug("event %s %s", event.name, data)

        # Copy: listeners may (un)subscribe while we iterate.
        targets = list(self._listeners.get(event.name, []))
        if event.name != WILDCARD:
            targets.extend(self._listeners.get(WILDCARD, []))

        for listener in targets:
            try:
                result = listener(event)
            except Exception:
                logger.exception("Event listener failed event=%s", event.name)
                continue
            if inspect.isawaitable(result):
                self._schedule(event.name, result)
        return event

    @staticmethod
    def _schedule(name: str, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Async listener for %s dropped: no running event loop", name)
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return

        task = asyncio.ensure_future(awaitable, loop=loop)

        def _done(t: asyncio.Future) -> None:
            if t.cancelled():
                return
            exc = t.exception()
            if exc is not None:
                logger.error("Async event listener failed event=%s", name, exc_info=exc)

        task.add_done_callback(_done)
