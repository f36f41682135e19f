"""Operation lifecycle engine for Pure Fusion resources."""

__version__ = "0.1.0"

from .driver import Diagnostic, LifecycleAction, LifecycleResult, ResourceDriver, build_driver  # noqa: E402
from .operations import wait_on_operation  # noqa: E402
from .patches import execute_patches  # noqa: E402
from .retry import retry  # noqa: E402

__all__ = [
    "Diagnostic",
    "LifecycleAction",
    "LifecycleResult",
    "ResourceDriver",
    "__version__",
    "build_driver",
    "execute_patches",
    "retry",
    "wait_on_operation",
]
