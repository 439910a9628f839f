"""Shape checks for unit metadata and configuration."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Iterable

from .errors import UnitValidationError

HOOK_FIELDS = (
    "on_before_load",
    "on_prepare",
    "on_ready",
    "on_start",
    "on_stop",
    "on_teardown",
    "on_shutdown",
)
REGISTER_FIELDS = ("register", "loaders", "inject")
TAG_FIELDS = ("provides", "implements")

FIELD_SHAPES: dict[str, str] = {
    "requires": "strings|none",
    "provides": "strings|none",
    "implements": "strings|none",
    "define": "mapping|none",
    **{field: "mapping|none" for field in REGISTER_FIELDS},
    **{field: "callable|none" for field in HOOK_FIELDS},
}
CORE_FIELDS = frozenset(FIELD_SHAPES)


def _is_strings(value: Any) -> bool:
    return isinstance(value, (list, tuple)) and all(isinstance(item, str) for item in value)


_CHECKS: dict[str, Callable[[Any], bool]] = {
    "none": lambda value: value is None,
    "callable": callable,
    "mapping": lambda value: isinstance(value, Mapping),
    "string": lambda value: isinstance(value, str),
    "strings": _is_strings,
    "bool": lambda value: isinstance(value, bool),
}


def matches(value: Any, shape: str) -> bool:
    """Return whether ``value`` satisfies any alternative of ``shape`` (``"callable|none"``)."""

    for kind in shape.split("|"):
        check = _CHECKS.get(kind)
        if check is None:
            raise ValueError(f"unknown shape {kind!r}")
        if check(value):
            return True
    return False


def expect(value: Any, shape: str, label: str, *, unit: str | None = None) -> Any:
    if not matches(value, shape):
        raise UnitValidationError(
            f"{label} must be {shape.replace('|', ' or ')}, got {type(value).__name__}",
            unit=unit,
            field=label,
        )
    return value


def expect_field_names(config: Mapping[Any, Any], *, unit: str) -> None:
    for key in config:
        if not isinstance(key, str):
            raise UnitValidationError(
                f"field names must be strings, got {key!r}", unit=unit, field=repr(key)
            )


def validate_config(
    config: Mapping[str, Any],
    *,
    unit: str,
    pipelines: Iterable[str] = (),
    strict: bool = False,
) -> None:
    """Check core fields of a configuration layer; optionally reject unknown fields."""

    known = set(pipelines)
    for registry_field in REGISTER_FIELDS:
        known.update(config.get(registry_field) or ())

    for key, value in config.items():
        shape = FIELD_SHAPES.get(key)
        if shape is not None:
            expect(value, shape, key, unit=unit)
            continue
        if strict and key not in known:
            raise UnitValidationError(
                f"unknown field {key!r} (not a core field nor a registered pipeline)",
                unit=unit,
                field=key,
            )

    for registry_field in REGISTER_FIELDS:
        for name, processor in (config.get(registry_field) or {}).items():
            if name in CORE_FIELDS:
                raise UnitValidationError(
                    f"pipeline name {name!r} collides with a core field",
                    unit=unit,
                    field=f"{registry_field}.{name}",
                )
            expect(processor, "callable", f"{registry_field}.{name}", unit=unit)
