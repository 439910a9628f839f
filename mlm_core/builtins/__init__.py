"""Units shipped with the kernel, addressable through the default resolver."""

from __future__ import annotations

BUILTIN_UNITS: dict[str, str] = {
    "mlm.services": "mlm_core.builtins.services",
}

__all__ = ["BUILTIN_UNITS"]
