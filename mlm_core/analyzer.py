"""Side-effect free preflight of the installer's dependency walk."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from .errors import KernelError
from .loader import LoadedUnit, UnitLoader
from .tags import TAG_PATTERN, is_tag


@dataclass(frozen=True)
class UnitSummary:
    name: str
    locator: str
    requires: tuple[str, ...]
    provides: tuple[str, ...]


@dataclass
class AnalysisReport:
    """Best-effort install order, tag map and every problem found on the way."""

    order: list[str] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)
    units: list[UnitSummary] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors

    def as_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "order": list(self.order),
            "tags": dict(self.tags),
            "units": [
                {
                    "name": unit.name,
                    "locator": unit.locator,
                    "requires": list(unit.requires),
                    "provides": list(unit.provides),
                }
                for unit in self.units
            ],
            "errors": list(self.errors),
        }


class DependencyAnalyzer:
    """Import unit metadata only (factories are never called) and follow ``requires``."""

    def __init__(self, loader: UnitLoader) -> None:
        self.loader = loader
        self._logger = logging.getLogger(__name__)

    async def analyze(self, *names: str) -> AnalysisReport:
        walk = _Walk(self.loader, names)
        for name in names:
            await walk.visit(name)
        self._logger.debug("analysis of %s: %d error(s)", ", ".join(names), len(walk.report.errors))
        return walk.report


class _Walk:
    def __init__(self, loader: UnitLoader, queued: Sequence[str]) -> None:
        self.loader = loader
        self.queued = tuple(queued)
        self.report = AnalysisReport()
        self._visited: set[str] = set()
        self._stack: list[str] = []
        self._loaded: dict[str, LoadedUnit | KernelError] = {}

    async def _load(self, name: str) -> LoadedUnit:
        cached = self._loaded.get(name)
        if cached is None:
            try:
                cached = await self.loader.load(name)
            except KernelError as exc:
                cached = exc
            self._loaded[name] = cached
        if isinstance(cached, KernelError):
            raise cached
        return cached

    async def visit(self, name: str, required_by: str | None = None) -> None:
        if is_tag(name):
            if name in self.report.tags:
                return
            if required_by is not None:
                provider = await self._queued_provider(name)
                if provider is not None:
                    await self.visit(provider)
                if name not in self.report.tags:
                    self.report.errors.append(f"missing tag {name} required by {required_by}")
                return
        if name in self._visited:
            return
        if name in self._stack:
            self.report.errors.append(f"dependency cycle: {' -> '.join([*self._stack, name])}")
            return

        self._stack.append(name)
        try:
            try:
                loaded = await self._load(name)
            except KernelError as exc:
                self.report.errors.append(f"failed to analyze {name}: {exc}")
                return
            for dependency in loaded.info.requires:
                await self.visit(dependency, required_by=name)
            self._claim_tags(loaded)
            self.report.order.append(name)
            self.report.units.append(
                UnitSummary(
                    name=name,
                    locator=loaded.locator,
                    requires=loaded.info.requires,
                    provides=loaded.info.provides,
                )
            )
        finally:
            self._stack.pop()
            self._visited.add(name)

    def _claim_tags(self, loaded: LoadedUnit) -> None:
        for tag in loaded.info.provides:
            if TAG_PATTERN.fullmatch(tag) is None:
                self.report.errors.append(f"invalid tag {tag!r} provided by {loaded.name}")
                continue
            owner = self.report.tags.get(tag)
            if owner is not None and owner != loaded.name:
                self.report.errors.append(f"duplicate tag {tag} provided by {owner} and {loaded.name}")
                continue
            self.report.tags[tag] = loaded.name

    async def _queued_provider(self, tag: str) -> str | None:
        for candidate in self.queued:
            if candidate in self._visited or candidate in self._stack:
                continue
            try:
                loaded = await self._load(candidate)
            except KernelError:
                continue
            if tag in loaded.info.provides:
                return candidate
        return None
