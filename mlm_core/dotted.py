"""Expansion of dotted top-level keys into nested mappings."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any


def expand_dotted_keys(config: Mapping[str, Any]) -> dict[str, Any]:
    """Nest every top-level ``"a.b.c"`` key into ``{"a": {"b": {"c": ...}}}``.

    Only top-level keys are split; keys inside nested values are left alone.
    A non-mapping value met mid-path is replaced by a fresh mapping, shadowing
    whatever was stored there. Mappings met mid-path are copied before being
    extended, so the caller's objects are never mutated.
    """

    expanded: dict[str, Any] = {}
    for key, value in config.items():
        *parents, last = key.split(".")
        target = expanded
        for part in parents:
            current = target.get(part)
            target[part] = dict(current) if isinstance(current, Mapping) else {}
            target = target[part]
        target[last] = value
    return expanded
