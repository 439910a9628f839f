"""Core runtime of the MLM unit-loading microkernel."""

from .analyzer import AnalysisReport, DependencyAnalyzer, UnitSummary
from .config import KernelConfig, default_config_path
from .context import Accessor, ContextStore, UnitContext
from .dotted import expand_dotted_keys
from .errors import (
    DuplicateContextKeyError,
    DuplicateKeyError,
    DuplicatePipelineError,
    DuplicateTagError,
    KernelBusyError,
    KernelError,
    KernelNotStartedError,
    KernelStateError,
    MissingDependencyError,
    ReadOnlyContextError,
    ReentrancyError,
    UnitImportError,
    UnitValidationError,
)
from .events import Event, EventBus
from .kernel import Kernel
from .lifecycle import KernelState, LifecycleQueues
from .loader import ModuleImporter, UnitLoader, default_resolve_module
from .paths import UserDirs
from .pipeline import ExtensionPipeline
from .tags import TagRegistry
from .unit import Unit, UnitInfo, UnitTable

__version__ = "0.1.0"

__all__ = [
    "Accessor",
    "AnalysisReport",
    "ContextStore",
    "DependencyAnalyzer",
    "DuplicateContextKeyError",
    "DuplicateKeyError",
    "DuplicatePipelineError",
    "DuplicateTagError",
    "Event",
    "EventBus",
    "ExtensionPipeline",
    "Kernel",
    "KernelBusyError",
    "KernelConfig",
    "KernelError",
    "KernelNotStartedError",
    "KernelState",
    "KernelStateError",
    "LifecycleQueues",
    "MissingDependencyError",
    "ModuleImporter",
    "ReadOnlyContextError",
    "ReentrancyError",
    "TagRegistry",
    "Unit",
    "UnitContext",
    "UnitImportError",
    "UnitInfo",
    "UnitLoader",
    "UnitSummary",
    "UnitTable",
    "UnitValidationError",
    "UserDirs",
    "default_config_path",
    "default_resolve_module",
    "expand_dotted_keys",
]
