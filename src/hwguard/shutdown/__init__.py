"""OS shutdown mechanism used by the thermal guard and the power API."""

from hwguard.exceptions import NoPendingShutdownError, ShutdownCommandError
from hwguard.shutdown.commands import SystemShutdown, resolve_platform

__all__ = [
    "NoPendingShutdownError",
    "ShutdownCommandError",
    "SystemShutdown",
    "resolve_platform",
]
