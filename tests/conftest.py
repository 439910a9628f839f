"""Shared fixtures: kernels whose units are served from memory."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Callable, Mapping

import pytest

from mlm_core import Kernel


class FakeImporter:
    """Importer over a dict of artifacts; bare callables become factories with empty info."""

    def __init__(self, units: Mapping[str, Any]) -> None:
        self.units = dict(units)
        self.imports: list[str] = []

    def __call__(self, locator: str) -> Any:
        self.imports.append(locator)
        try:
            artifact = self.units[locator]
        except KeyError:
            raise ModuleNotFoundError(f"No module named {locator!r}") from None
        if callable(artifact) and not hasattr(artifact, "info"):
            return SimpleNamespace(info={}, factory=artifact)
        return artifact


@pytest.fixture
def make_kernel() -> Callable[..., Kernel]:
    def build(units: Mapping[str, Any], **kwargs: Any) -> Kernel:
        importer = FakeImporter(units)
        kernel = Kernel(importer, lambda name: name, **kwargs)
        kernel.importer = importer
        return kernel

    return build
