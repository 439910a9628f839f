"""Lifecycle states and the ordered start/stop/teardown callback queues."""

from __future__ import annotations

import inspect
import logging
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from .context import UnitContext


class KernelState(Enum):
    """States of the lifecycle controller."""

    IDLE = "idle"
    INSTALLING = "installing"
    STARTING = "starting"
    STARTED = "started"
    STOPPING = "stopping"
    SHUTDOWN = "shutdown"
    STOPPED = "stopped"


@dataclass(frozen=True)
class QueuedHook:
    unit: str
    hook: str
    callback: Callable[[UnitContext], Any]
    context: UnitContext


async def call_hook(callback: Callable[[UnitContext], Any], context: UnitContext) -> Any:
    """Invoke a sync or async hook with the unit context."""

    result = callback(context)
    if inspect.isawaitable(result):
        result = await result
    return result


class LifecycleQueues:
    """Callbacks collected during install, drained by start and stop."""

    def __init__(self) -> None:
        self._start: list[QueuedHook] = []
        self._stop: list[QueuedHook] = []
        self._teardown: deque[QueuedHook] = deque()
        self._logger = logging.getLogger(__name__)

    def collect(self, unit: str, layer: Mapping[str, Any], context: UnitContext) -> None:
        """Queue the hooks of one configuration layer, in install order."""

        if layer.get("on_start"):
            self._start.append(QueuedHook(unit, "on_start", layer["on_start"], context))
        if layer.get("on_stop"):
            self._stop.append(QueuedHook(unit, "on_stop", layer["on_stop"], context))
        # head insertion: teardown runs in reverse install order
        for hook in ("on_shutdown", "on_teardown"):
            if layer.get(hook):
                self._teardown.appendleft(QueuedHook(unit, hook, layer[hook], context))

    @property
    def start(self) -> tuple[QueuedHook, ...]:
        return tuple(self._start)

    @property
    def stop(self) -> tuple[QueuedHook, ...]:
        return tuple(self._stop)

    @property
    def teardown(self) -> tuple[QueuedHook, ...]:
        return tuple(self._teardown)

    async def run_start(self) -> None:
        await self._drain(self.start)

    async def run_stop(self) -> None:
        await self._drain(self.stop)

    async def run_teardown(self) -> None:
        await self._drain(self.teardown)

    async def _drain(self, hooks: tuple[QueuedHook, ...]) -> None:
        for queued in hooks:
            self._logger.debug("%s %s", queued.unit, queued.hook)
            await call_hook(queued.callback, queued.context)
