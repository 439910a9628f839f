"""Error types raised by the MLM kernel."""

from __future__ import annotations

from typing import Sequence


class KernelError(Exception):
    """Base type for kernel failures."""


class UnitValidationError(KernelError):
    """Raised when a unit, field or tag does not have the expected shape."""

    def __init__(self, message: str, *, unit: str | None = None, field: str | None = None) -> None:
        super().__init__(f"[{unit}] {message}" if unit else message)
        self.unit = unit
        self.field = field


class DuplicateKeyError(KernelError):
    """Base type for collisions in the append-only registries."""


class DuplicateContextKeyError(DuplicateKeyError):
    """Raised when a context key is defined twice."""

    def __init__(self, key: str) -> None:
        super().__init__(f"context key {key!r} already exists")
        self.key = key


class DuplicateTagError(DuplicateKeyError):
    """Raised when a second unit claims a tag that already has an owner."""

    def __init__(self, tag: str, owner: str, claimant: str) -> None:
        super().__init__(f"tag {tag} already provided by unit {owner!r} (claimed again by {claimant!r})")
        self.tag = tag
        self.owner = owner
        self.claimant = claimant


class DuplicatePipelineError(DuplicateKeyError):
    """Raised when the same processor is registered twice for a pipeline."""

    def __init__(self, pipeline: str, unit: str) -> None:
        super().__init__(f"processor from unit {unit!r} is already registered for pipeline {pipeline!r}")
        self.pipeline = pipeline
        self.unit = unit


class MissingDependencyError(KernelError):
    """Raised when a required tag or unit cannot be resolved."""

    def __init__(self, dependency: str, unit: str) -> None:
        super().__init__(f"feature {dependency} required by unit {unit!r} is not available")
        self.dependency = dependency
        self.unit = unit


class ReentrancyError(KernelError):
    """Raised when a unit is installed again while its own install is running."""

    def __init__(self, unit: str, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        super().__init__(
            f"unit {unit!r} is already being installed: {' -> '.join(self.cycle)}"
        )
        self.unit = unit


class KernelStateError(KernelError):
    """Raised when a public operation is not valid in the current state."""


class KernelBusyError(KernelStateError):
    """Raised by install/start when the kernel is not idle."""


class KernelNotStartedError(KernelStateError):
    """Raised by stop when the kernel has not been started."""


class UnitImportError(KernelError):
    """Raised when a unit cannot be resolved or imported."""

    def __init__(self, unit: str, locator: str | None, reason: str) -> None:
        where = f" from {locator}" if locator else ""
        super().__init__(f"failed to import unit {unit!r}{where}: {reason}")
        self.unit = unit
        self.locator = locator
        self.reason = reason


class ReadOnlyContextError(KernelError):
    """Raised on any write through a context view."""
