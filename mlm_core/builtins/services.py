"""Service manager unit: lazily instantiated services declared by other units.

Units add providers through the ``services`` pipeline (instantiated on first
access) or ``preload_services`` (instantiated, and awaited, while the
declaring unit installs)::

    info = {"requires": ["mlm.services"]}

    def factory(ctx):
        return {"services": {"mailer": lambda ctx: Mailer(ctx.logger)}}

Providers are called with the context of the unit that declared them.
"""

from __future__ import annotations

import inspect
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator

from mlm_core.context import UnitContext
from mlm_core.errors import DuplicateKeyError
from mlm_core.unit import Unit

__all__ = ["ServiceContainer", "info", "factory"]

ServiceProvider = Callable[[UnitContext], Any]

info = {
    "description": "Lazy service registry published as the 'services' context property.",
    "provides": ["#services"],
}


@dataclass(frozen=True)
class _ServiceRegistration:
    provider: ServiceProvider
    context: UnitContext
    owner: str


class ServiceContainer:
    """Singleton services created on first request."""

    def __init__(self) -> None:
        object.__setattr__(self, "_registrations", {})
        object.__setattr__(self, "_instances", {})
        object.__setattr__(self, "_initializing", [])
        object.__setattr__(self, "_logger", logging.getLogger(__name__))

    def register(self, name: str, provider: ServiceProvider, *, context: UnitContext) -> None:
        existing = self._registrations.get(name)
        if existing is not None:
            raise DuplicateKeyError(
                f"service {name!r} already registered by unit {existing.owner!r}"
            )
        self._registrations[name] = _ServiceRegistration(
            provider=provider, context=context, owner=context.name
        )

    def __contains__(self, name: object) -> bool:
        return name in self._registrations

    def instantiated(self, name: str) -> bool:
        return name in self._instances

    def get(self, name: str) -> Any:
        """Resolve ``name``, calling its provider only the first time."""

        if name in self._instances:
            return self._instances[name]
        registration = self._registration(name)
        with self._guard(name):
            instance = registration.provider(registration.context)
        if inspect.isawaitable(instance):
            if inspect.iscoroutine(instance):
                instance.close()
            raise TypeError(f"service {name!r} has an async provider; declare it under preload_services")
        return self._store(name, instance)

    async def preload(self, name: str) -> Any:
        """Instantiate ``name`` now, awaiting an async provider."""

        if name in self._instances:
            return self._instances[name]
        registration = self._registration(name)
        with self._guard(name):
            instance = registration.provider(registration.context)
            if inspect.isawaitable(instance):
                instance = await instance
        return self._store(name, instance)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self.get(name)
        except KeyError as exc:
            raise AttributeError(str(exc)) from None

    def __getitem__(self, name: str) -> Any:
        return self.get(name)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("services are registered through the services pipeline")

    def _registration(self, name: str) -> _ServiceRegistration:
        registration = self._registrations.get(name)
        if registration is None:
            raise KeyError(f"service {name!r} is not registered")
        return registration

    @contextmanager
    def _guard(self, name: str) -> Iterator[None]:
        if name in self._initializing:
            chain = " -> ".join([*self._initializing, name])
            raise RuntimeError(f"re-entrant initialization detected for {name!r}: {chain}")
        self._initializing.append(name)
        try:
            yield
        finally:
            self._initializing.remove(name)

    def _store(self, name: str, instance: Any) -> Any:
        self._instances[name] = instance
        self._logger.debug("instantiated service %s", name)
        return instance


def factory(ctx: UnitContext) -> dict[str, Any]:
    container = ServiceContainer()

    def _declare(fragment: Any, unit: Unit, pipeline: str) -> list[str]:
        unit.context.expect(fragment, "mapping", pipeline)
        for name, provider in fragment.items():
            unit.context.expect(provider, "callable", f"{pipeline}.{name}")
            container.register(name, provider, context=unit.context)
            ctx.log.debug("service %s declared by %s", name, unit.name)
        return list(fragment)

    def register_services(fragment: Any, unit: Unit) -> None:
        _declare(fragment, unit, "services")

    async def preload_services(fragment: Any, unit: Unit) -> None:
        for name in _declare(fragment, unit, "preload_services"):
            await container.preload(name)

    return {
        "define": {"services": container},
        "register": {
            "services": register_services,
            "preload_services": preload_services,
        },
    }
