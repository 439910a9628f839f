"""Default resolution and module importing against real unit modules."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from mlm_core import Kernel, KernelConfig
from mlm_core.errors import UnitImportError
from mlm_core.loader import ModuleImporter, UnitLoader, default_resolve_module

FIXTURE_UNITS = Path(__file__).parent / "fixtures" / "units"


@pytest.mark.parametrize(
    ("name", "package", "expected"),
    [
        ("logger", "units", "units.logger"),
        ("mem-storage", "demo_units", "demo_units.mem_storage"),
        ("#key-value", "units", "units.key_value"),
        ("cache", "", "cache"),
        ("mlm.services", "demo_units", "mlm_core.builtins.services"),
    ],
)
def test_default_resolution(name: str, package: str, expected: str) -> None:
    assert default_resolve_module(name, package=package) == expected


def test_importer_uses_extra_search_paths() -> None:
    importer = ModuleImporter([FIXTURE_UNITS])

    module = importer("demo_units.cache")

    assert module.info["provides"] == ["#cache"]
    assert str(FIXTURE_UNITS) not in sys.path


def test_importer_loads_python_files_once() -> None:
    importer = ModuleImporter()
    path = str(FIXTURE_UNITS / "standalone_unit.py")

    module = importer(path)

    assert module.__name__ == "mlm_units.standalone_unit"
    assert importer(path) is module


@pytest.mark.asyncio
async def test_loader_validates_info_without_calling_factory() -> None:
    loader = UnitLoader(ModuleImporter([FIXTURE_UNITS]), lambda name: f"demo_units.{name}")

    loaded = await loader.load("mem_storage")

    assert loaded.info.provides == ("#storage",)
    assert loaded.info.description == "Dictionary-backed storage."
    assert loaded.locator == "demo_units.mem_storage"
    assert callable(loaded.factory)


@pytest.mark.asyncio
async def test_loader_reports_default_description() -> None:
    loader = UnitLoader(ModuleImporter([FIXTURE_UNITS]), lambda name: f"demo_units.{name}")

    loaded = await loader.load("consumer")

    assert loaded.info.description == "No description provided for consumer at demo_units.consumer"


@pytest.mark.asyncio
async def test_module_without_info_fails_to_load() -> None:
    loader = UnitLoader(ModuleImporter([FIXTURE_UNITS]), lambda name: f"demo_units.{name}")

    with pytest.raises(UnitImportError, match="no info mapping"):
        await loader.load("no_info")


@pytest.mark.asyncio
async def test_kernel_from_config_starts_package_units() -> None:
    kernel = Kernel.from_config(KernelConfig(units_package="demo_units", units_dirs=(FIXTURE_UNITS,)))

    await kernel.start("cache", "consumer", "mem-storage")

    assert list(kernel.units) == ["logger", "cache", "mem-storage", "consumer"]
    assert kernel.context.cache == {}
    assert kernel.context.log_lines == ["logger started"]
    assert kernel.context.storage == {"consumer": "ready"}
    assert kernel.units["#storage"].locator == "demo_units.mem_storage"


@pytest.mark.asyncio
async def test_default_kernel_installs_the_builtin_service_manager() -> None:
    kernel = Kernel()

    await kernel.install("mlm.services")

    assert kernel.units["#services"].locator == "mlm_core.builtins.services"
    assert kernel.pipelines == ("services", "preload_services")
