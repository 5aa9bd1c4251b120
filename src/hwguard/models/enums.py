"""Shared enumerations for the hwguard models."""

from enum import Enum


class Metric(str, Enum):
    """Temperature metric watched by the thermal guard.

    Declaration order is the evaluation order.
    """

    CPU = "cpu"
    GPU = "gpu"
    MB = "mb"


class GuardState(str, Enum):
    """State of the thermal guard."""

    DISARMED = "disarmed"
    ARMED = "armed"
    TRIGGERED = "triggered"


class PowerAction(str, Enum):
    """Manual power action accepted by the API."""

    SHUTDOWN = "shutdown"
    REBOOT = "reboot"
    CANCEL = "cancel"
