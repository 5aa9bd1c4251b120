"""Data models for hwguard."""

from .base import ApiModel
from .enums import GuardState, Metric, PowerAction
from .incident import GuardStatus, Incident
from .policy import (
    DELAY_MAX,
    DELAY_MIN,
    THRESHOLD_MAX,
    THRESHOLD_MIN,
    PolicyUpdateResult,
    ThresholdPolicy,
    apply_policy_update,
)
from .snapshot import SensorSnapshot
from .system import (
    BatteryInfo,
    ConnectionCounts,
    CpuInfo,
    GraphicsController,
    HostInfo,
    MemoryInfo,
    MotherboardInfo,
    NetworkInfo,
    NetworkInterface,
    NetworkStat,
    OsInfo,
    SystemReport,
)

__all__ = [
    "ApiModel",
    "BatteryInfo",
    "ConnectionCounts",
    "CpuInfo",
    "DELAY_MAX",
    "DELAY_MIN",
    "GraphicsController",
    "GuardState",
    "GuardStatus",
    "HostInfo",
    "Incident",
    "MemoryInfo",
    "Metric",
    "MotherboardInfo",
    "NetworkInfo",
    "NetworkInterface",
    "NetworkStat",
    "OsInfo",
    "PolicyUpdateResult",
    "PowerAction",
    "SensorSnapshot",
    "SystemReport",
    "THRESHOLD_MAX",
    "THRESHOLD_MIN",
    "ThresholdPolicy",
    "apply_policy_update",
]
