"""Layered kernel configuration: overrides, environment, TOML files, defaults."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import tomllib

from .loader import DEFAULT_UNITS_PACKAGE
from .paths import UserDirs

CONFIG_FILE_NAME = "mlm.toml"
CONFIG_SECTION = "kernel"

_ENV_KEY_MAP: dict[str, str] = {
    "units_package": "MLM_UNITS_PACKAGE",
    "units_dirs": "MLM_UNITS_DIRS",
    "strict": "MLM_STRICT",
    "log_level": "MLM_LOG_LEVEL",
}
_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})

logger = logging.getLogger(__name__)


def default_config_path(user_dirs: UserDirs | None = None) -> Path:
    """Return the platform-specific user config file."""

    return (user_dirs or UserDirs()).config_dir() / CONFIG_FILE_NAME


def _load_config_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as handle:
            document = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("ignoring unreadable config %s: %s", path, exc)
        return {}
    section = document.get(CONFIG_SECTION, {})
    if not isinstance(section, dict):
        logger.warning("ignoring malformed [%s] section in %s", CONFIG_SECTION, path)
        return {}
    return section


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_VALUES
    return bool(value)


def _as_paths(value: Any) -> tuple[Path, ...]:
    if isinstance(value, str):
        value = [part for part in value.split(os.pathsep) if part]
    return tuple(Path(part).expanduser() for part in value or ())


@dataclass(frozen=True)
class KernelConfig:
    """Settings used to wire a :class:`~mlm_core.kernel.Kernel` from the outside."""

    units_package: str = DEFAULT_UNITS_PACKAGE
    units_dirs: tuple[Path, ...] = field(default_factory=tuple)
    strict: bool = False
    log_level: str = "WARNING"

    @classmethod
    def resolve(
        cls,
        *,
        overrides: Mapping[str, Any] | None = None,
        env: Mapping[str, str] | None = None,
        start_dir: Path | None = None,
        user_dirs: UserDirs | None = None,
    ) -> "KernelConfig":
        """Merge overrides, environment, ``./mlm.toml``, the user config file and defaults."""

        env = os.environ if env is None else env
        start = (Path(start_dir) if start_dir else Path.cwd()).resolve()
        layers = [
            {key: value for key, value in (overrides or {}).items() if value is not None},
            {key: env[name] for key, name in _ENV_KEY_MAP.items() if env.get(name)},
            _load_config_file(start / CONFIG_FILE_NAME),
            _load_config_file(default_config_path(user_dirs)),
        ]
        merged: dict[str, Any] = {}
        for layer in reversed(layers):
            merged.update(layer)

        defaults = cls()
        return cls(
            units_package=str(merged.get("units_package", defaults.units_package)),
            units_dirs=_as_paths(merged.get("units_dirs", ())),
            strict=_as_bool(merged.get("strict", defaults.strict)),
            log_level=str(merged.get("log_level", defaults.log_level)).upper(),
        )
