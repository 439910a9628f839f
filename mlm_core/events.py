"""Kernel activity notifications delivered synchronously to observers."""

from __future__ import annotations

import bisect
import itertools
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping

__all__ = [
    "Event",
    "EventHandler",
    "EventBus",
    "KERNEL_EVENTS",
    "UNIT_PRE_INSTALL",
    "UNIT_INSTALLED",
    "PIPELINE_REGISTERED",
    "KERNEL_STATE",
]

UNIT_PRE_INSTALL = "unit.pre_install"
UNIT_INSTALLED = "unit.installed"
PIPELINE_REGISTERED = "pipeline.registered"
KERNEL_STATE = "kernel.state"

# payload keys carried by each event
_PAYLOAD_FIELDS: dict[str, frozenset[str]] = {
    UNIT_PRE_INSTALL: frozenset({"unit"}),
    UNIT_INSTALLED: frozenset({"unit", "locator"}),
    PIPELINE_REGISTERED: frozenset({"pipeline", "unit"}),
    KERNEL_STATE: frozenset({"previous", "current"}),
}

KERNEL_EVENTS = tuple(_PAYLOAD_FIELDS)


@dataclass(frozen=True)
class Event:
    """One kernel notification; ``payload`` is read-only."""

    name: str
    payload: Mapping[str, Any]


EventHandler = Callable[[Event], None]


def _check_event(event_name: str) -> None:
    if event_name not in _PAYLOAD_FIELDS:
        raise ValueError(f"unknown kernel event {event_name!r}, expected one of {', '.join(KERNEL_EVENTS)}")


class EventBus:
    """Observers of kernel events, called by descending priority then subscription order.

    Handlers run inline in the kernel's control flow; an exception raised by a
    handler aborts the operation that emitted the event.
    """

    def __init__(self) -> None:
        self._observers: dict[str, list[tuple[int, int, EventHandler]]] = {
            name: [] for name in KERNEL_EVENTS
        }
        self._counter = itertools.count()

    def on(self, event_name: str, handler: EventHandler, priority: int = 0) -> None:
        _check_event(event_name)
        # sort key (-priority, sequence) keeps the list in delivery order
        bisect.insort(
            self._observers[event_name],
            (-priority, next(self._counter), handler),
            key=lambda item: item[:2],
        )

    def off(self, event_name: str, handler: EventHandler) -> bool:
        """Drop every subscription of ``handler``; return whether one existed."""

        _check_event(event_name)
        observers = self._observers[event_name]
        before = len(observers)
        observers[:] = [item for item in observers if item[2] is not handler]
        return len(observers) != before

    def emit(self, event_name: str, payload: Mapping[str, Any]) -> None:
        _check_event(event_name)
        expected = _PAYLOAD_FIELDS[event_name]
        if set(payload) != expected:
            raise ValueError(
                f"{event_name} payload must carry {sorted(expected)}, got {sorted(payload)}"
            )
        event = Event(event_name, MappingProxyType(dict(payload)))
        for _, _, handler in tuple(self._observers[event_name]):
            handler(event)
