"""Platform directories used to locate user-level kernel configuration."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_config_dir

_DEFAULT_APP_NAME = "mlm"


@dataclass(frozen=True)
class UserDirs:
    """Platform-configured config location, overridable for tests."""

    app_name: str = _DEFAULT_APP_NAME
    config_dir_override: Path | None = None

    def config_dir(self) -> Path:
        if self.config_dir_override:
            return self.config_dir_override
        return Path(user_config_dir(self.app_name, appauthor=False))
