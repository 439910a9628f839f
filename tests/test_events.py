"""Unit tests for the kernel EventBus."""

import pytest

from mlm_core.events import (
    KERNEL_EVENTS,
    PIPELINE_REGISTERED,
    UNIT_INSTALLED,
    UNIT_PRE_INSTALL,
    EventBus,
)


def test_event_handlers_run_in_priority_order() -> None:
    bus = EventBus()
    seen: list[str] = []

    def make_handler(label: str):
        def handler(event):
            seen.append(f"{label}:{event.payload['unit']}")

        return handler

    bus.on(UNIT_PRE_INSTALL, make_handler("one"), priority=0)
    bus.on(UNIT_PRE_INSTALL, make_handler("two"), priority=0)
    bus.on(UNIT_PRE_INSTALL, make_handler("high"), priority=5)
    bus.on(UNIT_PRE_INSTALL, make_handler("low"), priority=-1)
    bus.emit(UNIT_PRE_INSTALL, {"unit": "logger"})

    assert seen == ["high:logger", "one:logger", "two:logger", "low:logger"]


def test_off_removes_a_handler() -> None:
    bus = EventBus()
    recorded: list[str] = []

    def handler(event):
        recorded.append(event.name)

    bus.on(UNIT_PRE_INSTALL, handler)
    assert bus.off(UNIT_PRE_INSTALL, handler) is True
    assert bus.off(UNIT_PRE_INSTALL, handler) is False
    bus.emit(UNIT_PRE_INSTALL, {"unit": "logger"})
    assert recorded == []


def test_only_kernel_events_are_accepted() -> None:
    bus = EventBus()

    with pytest.raises(ValueError, match="unknown kernel event 'ready'"):
        bus.on("ready", lambda event: None)
    with pytest.raises(ValueError, match="unknown kernel event"):
        bus.emit("ready", {})


def test_payload_must_match_the_event() -> None:
    bus = EventBus()

    with pytest.raises(ValueError, match="unit.installed payload must carry"):
        bus.emit(UNIT_INSTALLED, {"unit": "logger"})


def test_payload_is_read_only() -> None:
    bus = EventBus()
    received = []
    bus.on(UNIT_PRE_INSTALL, received.append)
    bus.emit(UNIT_PRE_INSTALL, {"unit": "logger"})

    with pytest.raises(TypeError):
        received[0].payload["unit"] = "other"


def test_kernel_events_are_listed() -> None:
    assert KERNEL_EVENTS == (
        "unit.pre_install",
        "unit.installed",
        "pipeline.registered",
        "kernel.state",
    )


@pytest.mark.asyncio
async def test_install_publishes_unit_events(make_kernel) -> None:
    bus = EventBus()
    seen: list[tuple[str, str]] = []
    for name in (UNIT_PRE_INSTALL, UNIT_INSTALLED, PIPELINE_REGISTERED):
        bus.on(name, lambda event: seen.append((event.name, event.payload["unit"])))

    kernel = make_kernel(
        {
            "router": lambda ctx: {"register": {"routes": lambda fragment, unit: None}},
            "api": lambda ctx: {"requires": ["router"]},
        },
        events=bus,
    )
    await kernel.install("api")

    assert seen == [
        ("unit.pre_install", "api"),
        ("unit.pre_install", "router"),
        ("pipeline.registered", "router"),
        ("unit.installed", "router"),
        ("unit.installed", "api"),
    ]
