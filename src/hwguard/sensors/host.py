"""Host metadata for the system report.

Collects processor, memory, baseboard, GPU, OS, battery and network
details with psutil and the platform module. Each block is best-effort:
a failure leaves that block at its defaults and is logged at debug level.
Temperatures are not read here; the poller merges in the resolved
SensorSnapshot.
"""

from __future__ import annotations

import platform
import socket
import sys
import threading
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple, TypeVar

import psutil
import structlog

from hwguard.exceptions import SensorError
from hwguard.models import (
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
)

from .nvidia import query_gpus
from .psutil_source import core_temperatures

log = structlog.get_logger()

T = TypeVar("T")

DMI_DIR = Path("/sys/class/dmi/id")
PROC_CPUINFO = Path("/proc/cpuinfo")
PROC_ROUTE = Path("/proc/net/route")


def _safe(block: str, func: Callable[[], T], default: T) -> T:
    try:
        return func()
    except (psutil.Error, OSError, ValueError, SensorError) as e:
        log.debug("host_block_unavailable", block=block, error=str(e))
        return default


def _read_text(path: Path) -> Optional[str]:
    try:
        value = path.read_text(encoding="utf-8", errors="replace").strip()
    except OSError:
        return None
    return value or None


def _cpu_brand() -> Tuple[Optional[str], Optional[str]]:
    """Return (manufacturer, brand) for the processor."""
    brand: Optional[str] = None
    vendor: Optional[str] = None
    cpuinfo = _read_text(PROC_CPUINFO)
    if cpuinfo:
        for line in cpuinfo.splitlines():
            key, _, value = line.partition(":")
            key = key.strip()
            if key == "model name" and brand is None:
                brand = value.strip()
            elif key == "vendor_id" and vendor is None:
                vendor = value.strip()
    if brand is None:
        brand = platform.processor() or None

    manufacturer = None
    maker = f"{vendor or ''} {brand or ''}".lower()
    if "intel" in maker:
        manufacturer = "Intel"
    elif "amd" in maker:
        manufacturer = "AMD"
    elif "apple" in maker:
        manufacturer = "Apple"
    elif vendor:
        manufacturer = vendor
    return manufacturer, brand


def default_interface() -> Optional[str]:
    """Name of the interface carrying the default route, if determinable."""
    routes = _read_text(PROC_ROUTE)
    if routes:
        for line in routes.splitlines()[1:]:
            fields = line.split()
            if len(fields) > 2 and fields[1] == "00000000":
                return fields[0]

    stats = psutil.net_if_stats()
    for name, addrs in psutil.net_if_addrs().items():
        iface_stats = stats.get(name)
        if iface_stats is None or not iface_stats.isup:
            continue
        for addr in addrs:
            if addr.family == socket.AF_INET and not addr.address.startswith("127."):
                return name
    return None


class HostCollector:
    """Gathers a HostInfo per call.

    Keeps the previous network counters so per-second rates can be
    derived between consecutive calls.
    """

    def __init__(self, nvidia_smi_enabled: bool = True, gpu_timeout: float = 10.0) -> None:
        self.nvidia_smi_enabled = nvidia_smi_enabled
        self.gpu_timeout = gpu_timeout
        self._net_lock = threading.Lock()
        self._last_net: Optional[Tuple[float, dict]] = None

    def collect(self) -> HostInfo:
        """Collect every block."""
        return HostInfo(
            cpu=_safe("cpu", self.cpu, CpuInfo()),
            memory=_safe("memory", self.memory, MemoryInfo()),
            motherboard=_safe("motherboard", self.motherboard, MotherboardInfo()),
            graphics=_safe("graphics", self.graphics, []),
            os=_safe("os", self.os_info, None),
            battery=_safe("battery", self.battery, BatteryInfo()),
            network=_safe("network", self.network, NetworkInfo()),
        )

    def cpu(self) -> CpuInfo:
        manufacturer, brand = _cpu_brand()
        freq = psutil.cpu_freq()
        per_core = psutil.cpu_percent(interval=None, percpu=True)
        core_temps = core_temperatures()
        return CpuInfo(
            manufacturer=manufacturer,
            brand=brand,
            speed=round(freq.current / 1000, 2) if freq and freq.current else None,
            speed_max=round(freq.max / 1000, 2) if freq and freq.max else None,
            cores=psutil.cpu_count(logical=True),
            physical_cores=psutil.cpu_count(logical=False),
            load=round(sum(per_core) / len(per_core), 1) if per_core else None,
            load_cores=[round(load, 1) for load in per_core],
            temperature_cores=core_temps,
            temp_max=max(core_temps) if core_temps else None,
        )

    def memory(self) -> MemoryInfo:
        vm = psutil.virtual_memory()
        return MemoryInfo(
            total=vm.total,
            free=vm.free,
            used=vm.used,
            available=vm.available,
            usage_percentage=round(vm.percent, 1),
        )

    def motherboard(self) -> MotherboardInfo:
        return MotherboardInfo(
            manufacturer=_read_text(DMI_DIR / "board_vendor"),
            model=_read_text(DMI_DIR / "board_name"),
            version=_read_text(DMI_DIR / "board_version"),
        )

    def graphics(self) -> List[GraphicsController]:
        if not self.nvidia_smi_enabled:
            return []
        return query_gpus(timeout=self.gpu_timeout)

    def os_info(self) -> OsInfo:
        distro: Optional[str] = None
        if sys.platform.startswith("linux"):
            try:
                distro = platform.freedesktop_os_release().get("PRETTY_NAME")
            except OSError:
                distro = None
        return OsInfo(
            platform=platform.system().lower() or sys.platform,
            distro=distro,
            release=platform.release() or None,
            kernel=platform.version() or None,
            arch=platform.machine() or None,
            hostname=socket.gethostname(),
            uptime=int(time.time() - psutil.boot_time()),
        )

    def battery(self) -> BatteryInfo:
        sensors_battery = getattr(psutil, "sensors_battery", None)
        battery = sensors_battery() if sensors_battery else None
        if battery is None:
            return BatteryInfo(has_battery=False)
        return BatteryInfo(
            has_battery=True,
            percent=round(battery.percent, 1),
            is_charging=battery.power_plugged,
        )

    def network(self) -> NetworkInfo:
        default = default_interface()
        addrs = psutil.net_if_addrs()
        if_stats = psutil.net_if_stats()

        interfaces: List[NetworkInterface] = []
        for name, entries in addrs.items():
            ip4 = next((a.address for a in entries if a.family == socket.AF_INET), None)
            ip6 = next((a.address for a in entries if a.family == socket.AF_INET6), None)
            mac = next((a.address for a in entries if a.family == psutil.AF_LINK), None)
            stats = if_stats.get(name)
            interfaces.append(
                NetworkInterface(
                    name=name,
                    speed=(stats.speed or None) if stats else None,
                    ip4=ip4,
                    ip6=ip6,
                    mac=mac,
                    operstate=("up" if stats.isup else "down") if stats else "unknown",
                    is_default=name == default,
                )
            )

        return NetworkInfo(
            default_interface=default,
            interfaces=interfaces,
            stats=self._traffic(),
            connections=_safe("connections", self._connections, ConnectionCounts()),
        )

    def _traffic(self) -> List[NetworkStat]:
        counters = psutil.net_io_counters(pernic=True)
        now = time.monotonic()
        with self._net_lock:
            previous = self._last_net
            self._last_net = (now, dict(counters))

        stats: List[NetworkStat] = []
        for iface, c in counters.items():
            rx_sec = tx_sec = 0.0
            if previous is not None:
                elapsed = now - previous[0]
                before = previous[1].get(iface)
                if before is not None and elapsed > 0:
                    rx_sec = max(0.0, (c.bytes_recv - before.bytes_recv) / elapsed)
                    tx_sec = max(0.0, (c.bytes_sent - before.bytes_sent) / elapsed)
            stats.append(
                NetworkStat(
                    iface=iface,
                    rx_bytes=c.bytes_recv,
                    tx_bytes=c.bytes_sent,
                    rx_sec=round(rx_sec, 1),
                    tx_sec=round(tx_sec, 1),
                    rx_dropped=c.dropin,
                    tx_dropped=c.dropout,
                    rx_errors=c.errin,
                    tx_errors=c.errout,
                )
            )
        return stats

    def _connections(self) -> ConnectionCounts:
        connections = psutil.net_connections(kind="inet")
        counts = ConnectionCounts(total=len(connections))
        for conn in connections:
            if conn.status == psutil.CONN_ESTABLISHED:
                counts.established += 1
            elif conn.status == psutil.CONN_LISTEN:
                counts.listening += 1
            elif conn.status == psutil.CONN_TIME_WAIT:
                counts.time_wait += 1
            elif conn.status == psutil.CONN_CLOSE_WAIT:
                counts.close_wait += 1
        return counts
