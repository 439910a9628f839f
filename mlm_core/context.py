"""Shared append-only context and the per-unit read views layered over it."""

from __future__ import annotations

import inspect
import logging
from collections import ChainMap
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Iterator

from .errors import DuplicateContextKeyError, ReadOnlyContextError, UnitValidationError
from .validation import expect

__all__ = ["Accessor", "ContextStore", "UnitContext"]

UNIT_LOGGER_PREFIX = "mlm.unit"


@dataclass(frozen=True)
class Accessor:
    """Published value that is recomputed by ``getter()`` on every read."""

    getter: Callable[[], Any]


class _ReadOnlyMapping(Mapping):
    """Mapping with attribute reads and no way to write."""

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(
                f"{type(self).__name__} has no entry {name!r}"
            ) from None

    def __setattr__(self, name: str, value: Any) -> None:
        raise ReadOnlyContextError(f"cannot set context property {name!r}")

    def __delattr__(self, name: str) -> None:
        raise ReadOnlyContextError(f"cannot delete context property {name!r}")

    def __setitem__(self, key: str, value: Any) -> None:
        raise ReadOnlyContextError(f"cannot set context property {key!r}")

    def __delitem__(self, key: str) -> None:
        raise ReadOnlyContextError(f"cannot delete context property {key!r}")


class ContextStore(_ReadOnlyMapping):
    """Process-wide mapping that only ever grows through :meth:`define`."""

    def __init__(self) -> None:
        object.__setattr__(self, "_entries", {})
        object.__setattr__(self, "_logger", logging.getLogger(__name__))

    def __getitem__(self, key: str) -> Any:
        value = self._entries[key]
        if isinstance(value, Accessor):
            return value.getter()
        return value

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"ContextStore({list(self._entries)!r})"

    async def define(self, name: str, value: Any, *, unit: str | None = None) -> None:
        """Publish ``name`` once; callables are produced, awaiting their result if needed.

        Names of store or view attributes (``get``, ``keys``, ``define`` ...) are
        rejected since attribute reads would return the attribute instead of the entry.
        """

        if not isinstance(name, str) or _shadowed(name):
            raise UnitValidationError(
                f"context property name {name!r} is reserved or not a string",
                unit=unit,
                field=f"define.{name}",
            )
        if name in self._entries:
            raise DuplicateContextKeyError(name)
        if callable(value) and not isinstance(value, Accessor):
            value = value()
            if inspect.isawaitable(value):
                value = await value
            # the producer may itself have published the same key meanwhile
            if name in self._entries:
                raise DuplicateContextKeyError(name)
        self._entries[name] = value
        self._logger.debug("defined context property %s", name)

    def view(self) -> Mapping[str, Any]:
        """Live read-only view used by unit contexts."""

        return _StoreView(self)


class _StoreView(Mapping):
    def __init__(self, store: ContextStore) -> None:
        self._store = store
        self._entries = MappingProxyType(store._entries)

    def __getitem__(self, key: str) -> Any:
        return self._store[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class UnitContext(_ReadOnlyMapping):
    """Read view handed to one unit: local helpers first, then the shared store."""

    def __init__(
        self,
        name: str,
        store: ContextStore,
        *,
        import_module: Callable[[str], Any] | None = None,
        resolve_module: Callable[[str], Any] | None = None,
    ) -> None:
        logger = logging.getLogger(f"{UNIT_LOGGER_PREFIX}.{name}")
        local = {
            "name": name,
            "log": logger,
            "check": self._check,
            "expect": self._expect,
            "import_module": import_module,
            "resolve_module": resolve_module,
        }
        object.__setattr__(self, "_unit", name)
        object.__setattr__(self, "_lookup", ChainMap(local, store.view()))

    def __getitem__(self, key: str) -> Any:
        return self._lookup[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._lookup)

    def __len__(self) -> int:
        return len(self._lookup)

    def __repr__(self) -> str:
        return f"UnitContext({self._unit!r})"

    def _check(self, condition: Any, message: str) -> None:
        if not condition:
            raise UnitValidationError(message, unit=self._unit)

    def _expect(self, value: Any, shape: str, label: str) -> Any:
        return expect(value, shape, label, unit=self._unit)


def _shadowed(name: str) -> bool:
    return any(
        name in vars(klass) for klass in (*ContextStore.__mro__, *UnitContext.__mro__)
    )
