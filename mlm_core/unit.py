"""Unit metadata, installed unit records and the installed-unit table."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Iterator

from .errors import UnitValidationError
from .validation import expect

if TYPE_CHECKING:
    from .context import UnitContext
    from .tags import TagRegistry

_INFO_KEYS = ("requires", "provides", "description", "version", "author")


@dataclass(frozen=True)
class UnitInfo:
    """Immutable representation of the ``info`` metadata a unit module exports."""

    requires: tuple[str, ...] = ()
    provides: tuple[str, ...] = ()
    description: str = ""
    version: str | None = None
    author: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, name: str, data: Any, locator: str | None = None) -> "UnitInfo":
        """Validate and normalize raw ``info`` metadata."""

        if not isinstance(data, Mapping):
            raise UnitValidationError(f"no info mapping exported at {locator}", unit=name, field="info")
        requires = expect(data.get("requires") or (), "strings", "info.requires", unit=name)
        provides = expect(data.get("provides") or (), "strings", "info.provides", unit=name)
        description = data.get("description") or f"No description provided for {name} at {locator}"
        expect(description, "string", "info.description", unit=name)
        for key in ("version", "author"):
            expect(data.get(key), "string|none", f"info.{key}", unit=name)
        return cls(
            requires=tuple(requires),
            provides=tuple(provides),
            description=description,
            version=data.get("version"),
            author=data.get("author"),
            extra=MappingProxyType({k: v for k, v in data.items() if k not in _INFO_KEYS}),
        )


@dataclass(frozen=True)
class Unit:
    """Record of an installed unit; ``name`` is assigned by the installer."""

    name: str
    info: UnitInfo
    locator: str | None
    config: Mapping[str, Any]
    layers: tuple[Mapping[str, Any], ...]
    context: "UnitContext" = field(repr=False)

    def __getitem__(self, key: str) -> Any:
        return self.config[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self.config.get(key, default)

    @property
    def requires(self) -> tuple[str, ...]:
        return merge_names(self.info.requires, self.config.get("requires"))

    @property
    def provides(self) -> tuple[str, ...]:
        return merge_names(
            self.info.provides,
            self.config.get("provides"),
            self.config.get("implements"),
        )


def merge_names(*groups: Any) -> tuple[str, ...]:
    """Concatenate name sequences, keeping first occurrences only."""

    merged: list[str] = []
    for group in groups:
        for name in group or ():
            if name not in merged:
                merged.append(name)
    return tuple(merged)


class UnitTable(Mapping):
    """Read-only table of installed units; ``#tag`` keys resolve to their owner."""

    def __init__(self, units: Mapping[str, Unit], tags: "TagRegistry") -> None:
        self._units = units
        self._tags = tags

    def __getitem__(self, key: str) -> Unit:
        owner = self._tags.owner(key)
        if owner is not None:
            key = owner
        return self._units[key]

    def __contains__(self, key: object) -> bool:
        if isinstance(key, str):
            key = self._tags.owner(key) or key
        return key in self._units

    def __iter__(self) -> Iterator[str]:
        return iter(self._units)

    def __len__(self) -> int:
        return len(self._units)

    def __repr__(self) -> str:
        return f"UnitTable({list(self._units)!r})"
