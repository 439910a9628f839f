"""Named, append-only processor chains run against unit configuration fragments."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from .errors import DuplicatePipelineError, UnitValidationError

if TYPE_CHECKING:
    from .unit import Unit

Processor = Callable[[Any, "Unit"], "Mapping[str, Any] | None | Awaitable[Mapping[str, Any] | None]"]


@dataclass(frozen=True)
class ProcessorEntry:
    pipeline: str
    processor: Processor
    owner: str


class ExtensionPipeline:
    """Processors grouped by pipeline name, invoked in registration order."""

    def __init__(self) -> None:
        self._processors: dict[str, list[ProcessorEntry]] = {}
        self._logger = logging.getLogger(__name__)

    def register(self, pipeline: str, processor: Processor, *, owner: str) -> ProcessorEntry:
        entries = self._processors.setdefault(pipeline, [])
        if any(entry.processor is processor for entry in entries):
            raise DuplicatePipelineError(pipeline, owner)
        entry = ProcessorEntry(pipeline=pipeline, processor=processor, owner=owner)
        self._logger.debug(
            "%s pipeline %s (processor from %s)",
            "extending" if len(entries) else "creating",
            pipeline,
            owner,
        )
        entries.append(entry)
        return entry

    def names(self) -> tuple[str, ...]:
        return tuple(self._processors)

    def processors(self, pipeline: str) -> tuple[ProcessorEntry, ...]:
        return tuple(self._processors.get(pipeline, ()))

    def __contains__(self, pipeline: object) -> bool:
        return pipeline in self._processors

    async def run(self, pipeline: str, fragment: Any, unit: "Unit") -> list[dict[str, Any]]:
        """Feed ``fragment`` through every processor of ``pipeline``; collect produced layers."""

        layers: list[dict[str, Any]] = []
        for entry in self.processors(pipeline):
            layer = await apply_processor(entry, fragment, unit)
            if layer is not None:
                layers.append(layer)
        return layers


async def apply_processor(entry: ProcessorEntry, fragment: Any, unit: "Unit") -> dict[str, Any] | None:
    result = entry.processor(fragment, unit)
    if inspect.isawaitable(result):
        result = await result
    if result is None:
        return None
    if not isinstance(result, Mapping):
        raise UnitValidationError(
            f"processor from {entry.owner!r} for pipeline {entry.pipeline!r} "
            f"returned {type(result).__name__}, expected a mapping layer or None",
            unit=unit.name,
            field=entry.pipeline,
        )
    return dict(result)
