"""Recursive unit installation: dependencies, tags, context, pipelines and hooks."""

from __future__ import annotations

import dataclasses
import inspect
import logging
from collections import deque
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Iterable, Iterator

from .context import ContextStore, UnitContext
from .dotted import expand_dotted_keys
from .errors import MissingDependencyError, ReentrancyError
from .events import PIPELINE_REGISTERED, UNIT_INSTALLED, UNIT_PRE_INSTALL, EventBus
from .lifecycle import LifecycleQueues, call_hook
from .loader import LoadedUnit, UnitLoader
from .pipeline import ExtensionPipeline, apply_processor
from .tags import TagRegistry, is_tag
from .unit import Unit, UnitTable
from .validation import REGISTER_FIELDS, expect, expect_field_names, validate_config


class UnitInstaller:
    """Install units depth-first, each dependency awaited before the next.

    The install stack doubles as the cycle detector: a unit that is asked to
    install while it is still on the stack fails with :class:`ReentrancyError`
    carrying the full path.
    """

    def __init__(
        self,
        loader: UnitLoader,
        *,
        store: ContextStore,
        tags: TagRegistry,
        pipeline: ExtensionPipeline,
        queues: LifecycleQueues,
        events: EventBus,
        strict: bool = False,
    ) -> None:
        self.loader = loader
        self.store = store
        self.tags = tags
        self.pipeline = pipeline
        self.queues = queues
        self.events = events
        self.strict = strict
        self._units: dict[str, Unit] = {}
        self._stack: list[str] = []
        self._queued: tuple[str, ...] = ()
        self._prefetched: dict[str, LoadedUnit] = {}
        self._logger = logging.getLogger(__name__)
        self.units = UnitTable(self._units, tags)

    @property
    def installing(self) -> tuple[str, ...]:
        return tuple(self._stack)

    async def install_all(self, names: Iterable[str]) -> None:
        """Install ``names`` in order; they count as queued providers for tag lookups."""

        self._queued = tuple(names)
        try:
            for name in self._queued:
                await self.install(name)
        finally:
            self._queued = ()
            self._prefetched.clear()

    async def install(self, name: str, *, required_by: str | None = None) -> None:
        """Install ``name`` unless it is already present."""

        if is_tag(name):
            if self.tags.owner(name) is not None:
                return
            if required_by is not None:
                await self._install_tag_provider(name, required_by)
                return
        if name in self._units:
            return
        if name in self._stack:
            raise ReentrancyError(name, [*self._stack, name])

        self._stack.append(name)
        try:
            await self._install(name)
        finally:
            self._stack.pop()

    async def _install_tag_provider(self, tag: str, required_by: str) -> None:
        for candidate in self._pending_candidates():
            loaded = self._prefetched.get(candidate)
            if loaded is None:
                loaded = self._prefetched[candidate] = await self.loader.load(candidate)
            if tag in loaded.info.provides:
                self._logger.debug("installing %s early to satisfy %s", candidate, tag)
                await self.install(candidate)
                break
        # tags declared by factories are only known once the unit is installed
        for candidate in self._pending_candidates():
            if self.tags.owner(tag) is not None:
                break
            self._logger.debug("installing %s early while looking for %s", candidate, tag)
            await self.install(candidate)
        if self.tags.owner(tag) is None:
            raise MissingDependencyError(tag, required_by)

    def _pending_candidates(self) -> Iterator[str]:
        for candidate in self._queued:
            if candidate not in self._units and candidate not in self._stack:
                yield candidate

    async def _install(self, name: str) -> None:
        self.events.emit(UNIT_PRE_INSTALL, {"unit": name})
        loaded = self._prefetched.pop(name, None) or await self.loader.load(name)
        context = UnitContext(
            name,
            self.store,
            import_module=self.loader.import_module,
            resolve_module=self.loader.resolve_module,
        )
        self._logger.info("installing %s from %s", name, loaded.locator)

        config = await self._build_config(loaded, context)
        unit = Unit(
            name=name,
            info=loaded.info,
            locator=loaded.locator,
            config=MappingProxyType(config),
            layers=(MappingProxyType(config),),
            context=context,
        )

        if config.get("on_before_load"):
            await call_hook(config["on_before_load"], context)

        for dependency in unit.requires:
            await self.install(dependency, required_by=name)

        for tag in unit.provides:
            self.tags.claim(tag, name)

        if config.get("on_prepare"):
            await call_hook(config["on_prepare"], context)

        await self._define(config, context)
        layers = await self._process_layers(unit, config)

        for layer in layers:
            if layer.get("on_ready"):
                context.log.debug("on_ready")
                await call_hook(layer["on_ready"], context)
        for layer in layers:
            self.queues.collect(name, layer, context)

        self._units[name] = dataclasses.replace(
            unit, layers=tuple(MappingProxyType(layer) for layer in layers)
        )
        self.events.emit(UNIT_INSTALLED, {"unit": name, "locator": loaded.locator})
        self._logger.debug("installed %s", name)

    async def _build_config(self, loaded: LoadedUnit, context: UnitContext) -> dict[str, Any]:
        factory = expect(loaded.factory, "callable|none", "factory", unit=loaded.name)
        if factory is None:
            return {}
        raw = factory(context)
        if inspect.isawaitable(raw):
            raw = await raw
        expect(raw, "mapping", "factory return value", unit=loaded.name)
        expect_field_names(raw, unit=loaded.name)
        config = expand_dotted_keys(raw)
        validate_config(config, unit=loaded.name, pipelines=self.pipeline.names(), strict=self.strict)
        return config

    async def _define(self, layer: Mapping[str, Any], context: UnitContext) -> None:
        for key, value in (layer.get("define") or {}).items():
            context.log.debug("define context property %s", key)
            await self.store.define(key, value, unit=context.name)

    async def _process_layers(self, unit: Unit, config: dict[str, Any]) -> list[dict[str, Any]]:
        """Register processors and run pipelines, following every layer they produce."""

        layers: list[dict[str, Any]] = []
        pending: deque[dict[str, Any]] = deque([config])
        while pending:
            layer = pending.popleft()
            if layer is not config:
                expect_field_names(layer, unit=unit.name)
                layer = expand_dotted_keys(layer)
                validate_config(layer, unit=unit.name, pipelines=self.pipeline.names(), strict=self.strict)
                await self._define(layer, unit.context)
            pending.extend(await self._register_processors(unit, layer, processed=tuple(layers)))
            layers.append(layer)
            for pipeline in self.pipeline.names():
                fragment = layer.get(pipeline)
                if fragment is not None:
                    pending.extend(await self.pipeline.run(pipeline, fragment, unit))
        return layers

    async def _register_processors(
        self,
        unit: Unit,
        layer: Mapping[str, Any],
        *,
        processed: tuple[Mapping[str, Any], ...] = (),
    ) -> list[dict[str, Any]]:
        """Register the layer's processors and replay each over fragments it missed.

        Installed units and the layers ``unit`` already went through only see the
        new processor; earlier processors of the same pipeline have run on them.
        """

        produced: list[dict[str, Any]] = []
        for registry_field in REGISTER_FIELDS:
            for pipeline, processor in (layer.get(registry_field) or {}).items():
                entry = self.pipeline.register(pipeline, processor, owner=unit.name)
                self.events.emit(PIPELINE_REGISTERED, {"pipeline": pipeline, "unit": unit.name})
                missed = [
                    (installed, installed_layer)
                    for installed in list(self._units.values())
                    for installed_layer in installed.layers
                ]
                missed.extend((unit, earlier) for earlier in processed)
                for owner, missed_layer in missed:
                    fragment = missed_layer.get(pipeline)
                    if fragment is None:
                        continue
                    layer_out = await apply_processor(entry, fragment, owner)
                    if layer_out is not None:
                        produced.append(layer_out)
        return produced
