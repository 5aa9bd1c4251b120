"""Thermal guard: policy store and the shutdown state machine."""

from hwguard.guard.guard import ShutdownIssuer, ThermalGuard, shutdown_reason
from hwguard.guard.policy import PolicyStore

__all__ = [
    "PolicyStore",
    "ShutdownIssuer",
    "ThermalGuard",
    "shutdown_reason",
]
