"""Resolve unit names to locators and import unit artifacts."""

from __future__ import annotations

import importlib
import importlib.util
import inspect
import logging
import sys
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Awaitable, Callable, Iterable, Iterator

from .builtins import BUILTIN_UNITS
from .errors import KernelError, UnitImportError
from .unit import UnitInfo

ImportModule = Callable[[str], "Any | Awaitable[Any]"]
ResolveModule = Callable[[str], "str | Awaitable[str]"]

DEFAULT_UNITS_PACKAGE = "units"
_FILE_MODULE_PREFIX = "mlm_units"


def default_resolve_module(name: str, package: str = DEFAULT_UNITS_PACKAGE) -> str:
    """Map ``name`` to ``<package>.<module>``; ``#`` is dropped and ``-`` becomes ``_``.

    Builtin unit names (``mlm.services``) resolve to their module in
    :mod:`mlm_core.builtins` regardless of ``package``.
    """

    builtin = BUILTIN_UNITS.get(name)
    if builtin is not None:
        return builtin
    module = name.lstrip("#").replace("-", "_")
    return f"{package}.{module}" if package else module


class ModuleImporter:
    """Import a dotted module path or a ``.py`` file, with extra search paths."""

    def __init__(self, search_paths: Iterable[Path | str] = ()) -> None:
        self.search_paths = tuple(Path(path) for path in search_paths)

    def __call__(self, locator: str) -> ModuleType:
        with self._insert_sys_path():
            if locator.endswith(".py"):
                return self._import_file(Path(locator))
            return importlib.import_module(locator)

    @contextmanager
    def _insert_sys_path(self) -> Iterator[None]:
        inserted: list[str] = []
        for path in reversed(self.search_paths):
            entry = str(path)
            if entry not in sys.path:
                sys.path.insert(0, entry)
                inserted.append(entry)
        try:
            yield
        finally:
            for entry in inserted:
                if entry in sys.path:
                    sys.path.remove(entry)

    def _import_file(self, path: Path) -> ModuleType:
        path = path.resolve()
        module_name = f"{_FILE_MODULE_PREFIX}.{path.stem}"
        existing = sys.modules.get(module_name)
        if existing is not None and getattr(existing, "__file__", None) == str(path):
            return existing
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ImportError(f"cannot load a module from {path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(module_name, None)
            raise
        return module


@dataclass(frozen=True)
class LoadedUnit:
    """A unit artifact together with its validated metadata."""

    name: str
    locator: str
    artifact: Any
    factory: Any
    info: UnitInfo


class UnitLoader:
    """Wrap the injected resolver and importer with unit-aware error reporting."""

    def __init__(self, import_module: ImportModule, resolve_module: ResolveModule) -> None:
        self.import_module = import_module
        self.resolve_module = resolve_module
        self._logger = logging.getLogger(__name__)

    async def resolve(self, name: str) -> str:
        try:
            locator = self.resolve_module(name)
            if inspect.isawaitable(locator):
                locator = await locator
        except Exception as exc:
            raise UnitImportError(name, None, f"cannot resolve locator: {exc}") from exc
        if not isinstance(locator, str) or not locator:
            raise UnitImportError(name, None, f"resolver returned {locator!r}")
        return locator

    async def load(self, name: str) -> LoadedUnit:
        """Import ``name`` and validate its ``info``; the factory is not called."""

        locator = await self.resolve(name)
        self._logger.debug("importing unit %s from %s", name, locator)
        try:
            artifact = self.import_module(locator)
            if inspect.isawaitable(artifact):
                artifact = await artifact
        except Exception as exc:
            raise UnitImportError(name, locator, str(exc) or type(exc).__name__) from exc

        try:
            info = UnitInfo.from_mapping(name, getattr(artifact, "info", None), locator)
        except KernelError as exc:
            raise UnitImportError(name, locator, str(exc)) from exc

        return LoadedUnit(
            name=name,
            locator=locator,
            artifact=artifact,
            factory=getattr(artifact, "factory", None),
            info=info,
        )
