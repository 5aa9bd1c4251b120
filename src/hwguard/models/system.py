"""Host metadata models served by GET /api/system.

Everything here is display data. Fields are optional because every
collector is best-effort and hosts differ wildly in what they expose.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from .base import ApiModel


class CpuInfo(ApiModel):
    """Processor description and live load."""

    manufacturer: Optional[str] = None
    brand: Optional[str] = None
    speed: Optional[float] = Field(default=None, description="Current clock in GHz")
    speed_max: Optional[float] = Field(default=None, description="Max clock in GHz")
    cores: Optional[int] = None
    physical_cores: Optional[int] = None
    load: Optional[float] = Field(default=None, description="Total load percent")
    load_cores: List[float] = Field(default_factory=list)
    temperature: Optional[float] = None
    temperature_cores: List[float] = Field(default_factory=list)
    temp_max: Optional[float] = None


class MemoryInfo(ApiModel):
    """Physical memory usage in bytes."""

    total: int = 0
    free: int = 0
    used: int = 0
    available: int = 0
    usage_percentage: float = 0.0


class MotherboardInfo(ApiModel):
    """Baseboard identity and temperature."""

    manufacturer: Optional[str] = None
    model: Optional[str] = None
    version: Optional[str] = None
    temperature: Optional[float] = None


class GraphicsController(ApiModel):
    """One GPU."""

    vendor: Optional[str] = None
    model: Optional[str] = None
    vram: Optional[int] = Field(default=None, description="VRAM in MiB")
    temperature: Optional[float] = None


class OsInfo(ApiModel):
    """Operating system description."""

    platform: str
    distro: Optional[str] = None
    release: Optional[str] = None
    kernel: Optional[str] = None
    arch: Optional[str] = None
    hostname: Optional[str] = None
    uptime: Optional[int] = Field(default=None, description="Seconds since boot")


class BatteryInfo(ApiModel):
    """Battery state; has_battery is False on desktops."""

    has_battery: bool = False
    percent: Optional[float] = None
    is_charging: Optional[bool] = None


class NetworkInterface(ApiModel):
    """Static description of a network interface."""

    name: str
    speed: Optional[int] = Field(default=None, description="Link speed in Mbit/s")
    ip4: Optional[str] = None
    ip6: Optional[str] = None
    mac: Optional[str] = None
    operstate: str = "unknown"
    is_default: bool = False


class NetworkStat(ApiModel):
    """Traffic counters for one interface."""

    iface: str
    rx_bytes: int = 0
    tx_bytes: int = 0
    rx_sec: float = 0.0
    tx_sec: float = 0.0
    rx_dropped: int = 0
    tx_dropped: int = 0
    rx_errors: int = 0
    tx_errors: int = 0


class ConnectionCounts(ApiModel):
    """Socket counts grouped by TCP state."""

    total: int = 0
    established: int = 0
    listening: int = 0
    time_wait: int = 0
    close_wait: int = 0


class NetworkInfo(ApiModel):
    """Interfaces, traffic and connection summary."""

    default_interface: Optional[str] = None
    interfaces: List[NetworkInterface] = Field(default_factory=list)
    stats: List[NetworkStat] = Field(default_factory=list)
    connections: ConnectionCounts = Field(default_factory=ConnectionCounts)


class HostInfo(ApiModel):
    """Host metadata gathered on one tick, before temperatures are merged in."""

    cpu: CpuInfo = Field(default_factory=CpuInfo)
    memory: MemoryInfo = Field(default_factory=MemoryInfo)
    motherboard: MotherboardInfo = Field(default_factory=MotherboardInfo)
    graphics: List[GraphicsController] = Field(default_factory=list)
    os: Optional[OsInfo] = None
    battery: BatteryInfo = Field(default_factory=BatteryInfo)
    network: NetworkInfo = Field(default_factory=NetworkInfo)


class SystemReport(HostInfo):
    """The latest published reading: host metadata plus resolved temperatures."""

    collected_at: datetime
    temperature_sources: dict = Field(
        default_factory=dict, description="Metric -> resolver that supplied it"
    )
