"""Public entry point: the lifecycle controller wrapping the unit installer."""

from __future__ import annotations

import functools
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

from .analyzer import AnalysisReport, DependencyAnalyzer
from .context import ContextStore
from .errors import KernelBusyError, KernelNotStartedError
from .events import KERNEL_STATE, EventBus
from .installer import UnitInstaller
from .lifecycle import KernelState, LifecycleQueues
from .loader import ImportModule, ModuleImporter, ResolveModule, UnitLoader, default_resolve_module
from .pipeline import ExtensionPipeline
from .tags import TagRegistry
from .unit import UnitTable

if TYPE_CHECKING:
    from .config import KernelConfig


class Kernel:
    """One independent microkernel: context, tags, pipelines, units and lifecycle.

    ``install`` and ``start`` are only accepted while idle and ``stop`` only
    once started; overlapping calls are rejected instead of queued. A failed
    call leaves the kernel in the state it failed in.
    """

    def __init__(
        self,
        import_module: ImportModule | None = None,
        resolve_module: ResolveModule | None = None,
        *,
        strict: bool = False,
        events: EventBus | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.logger = logger or logging.getLogger("mlm_core.kernel")
        self.events = events or EventBus()
        self._store = ContextStore()
        self._tags = TagRegistry()
        self._pipeline = ExtensionPipeline()
        self._queues = LifecycleQueues()
        self._loader = UnitLoader(
            import_module or ModuleImporter(),
            resolve_module or default_resolve_module,
        )
        self._installer = UnitInstaller(
            self._loader,
            store=self._store,
            tags=self._tags,
            pipeline=self._pipeline,
            queues=self._queues,
            events=self.events,
            strict=strict,
        )
        self._analyzer = DependencyAnalyzer(self._loader)
        self._state = KernelState.IDLE

    @classmethod
    def from_config(cls, config: "KernelConfig", **kwargs) -> "Kernel":
        """Build a kernel importing units from ``config.units_package``."""

        return cls(
            ModuleImporter(config.units_dirs),
            functools.partial(default_resolve_module, package=config.units_package),
            strict=config.strict,
            **kwargs,
        )

    @property
    def state(self) -> KernelState:
        return self._state

    @property
    def units(self) -> UnitTable:
        return self._installer.units

    @property
    def context(self) -> ContextStore:
        return self._store

    @property
    def tags(self) -> Mapping[str, str]:
        return self._tags

    @property
    def pipelines(self) -> tuple[str, ...]:
        return self._pipeline.names()

    @property
    def queues(self) -> LifecycleQueues:
        return self._queues

    async def install(self, *names: str) -> None:
        """Install units (and their dependencies) without starting them."""

        self._require_idle()
        self._transition(KernelState.INSTALLING)
        await self._installer.install_all(names)
        self._transition(KernelState.IDLE)

    async def start(self, *names: str) -> None:
        """Install ``names``, then run every queued ``on_start`` in install order."""

        self._require_idle()
        self.logger.info("starting %s", ", ".join(names) or "installed units")
        self._transition(KernelState.STARTING)
        await self._installer.install_all(names)
        await self._queues.run_start()
        self._transition(KernelState.STARTED)

    async def stop(self) -> None:
        """Run ``on_stop`` hooks in install order, then teardown hooks in reverse."""

        if self._state is not KernelState.STARTED:
            raise KernelNotStartedError(f"Not started (state: {self._state.value})")
        self._transition(KernelState.STOPPING)
        await self._queues.run_stop()
        self._transition(KernelState.SHUTDOWN)
        await self._queues.run_teardown()
        self._transition(KernelState.STOPPED)
        self.logger.info("stopped")

    async def analyze(self, *names: str) -> AnalysisReport:
        """Dry-run the dependency walk for ``names`` without touching kernel state."""

        return await self._analyzer.analyze(*names)

    def _require_idle(self) -> None:
        if self._state is not KernelState.IDLE:
            raise KernelBusyError(f"Busy (state: {self._state.value})")

    def _transition(self, state: KernelState) -> None:
        previous, self._state = self._state, state
        self.logger.debug("state %s -> %s", previous.value, state.value)
        self.events.emit(KERNEL_STATE, {"previous": previous, "current": state})
