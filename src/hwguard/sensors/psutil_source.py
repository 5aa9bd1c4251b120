"""Native temperature readings via psutil.sensors_temperatures()."""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

import psutil

from hwguard.models import Metric

from .base import TemperatureReading, parse_temperature

CPU_CHIPS = ("coretemp", "k10temp", "zenpower", "cpu_thermal", "cpu-thermal", "soc_thermal")
CPU_PACKAGE_LABELS = ("package id 0", "tctl", "tdie", "physical id 0")
GPU_CHIPS = ("amdgpu", "radeon", "nouveau", "gpu_thermal", "gpu-thermal")
MB_CHIPS = (
    "acpitz",
    "nct67",
    "it87",
    "it86",
    "asus_wmi_sensors",
    "pch_",
)
MB_LABELS = ("systin", "motherboard", "system", "pch")


def read_sensor_table() -> Dict[str, list]:
    """Return psutil's sensor table, or {} on platforms without support."""
    if not hasattr(psutil, "sensors_temperatures"):
        return {}
    try:
        return psutil.sensors_temperatures() or {}
    except (OSError, RuntimeError):
        return {}


def _first_current(entries: Sequence, preferred_labels: Sequence[str] = ()) -> Optional[float]:
    for label in preferred_labels:
        for entry in entries:
            if (entry.label or "").lower().startswith(label):
                temp = parse_temperature(entry.current)
                if temp is not None:
                    return temp
    for entry in entries:
        temp = parse_temperature(entry.current)
        if temp is not None:
            return temp
    return None


def _find_chip(
    table: Dict[str, list],
    names: Sequence[str],
    preferred_labels: Sequence[str] = (),
) -> Optional[float]:
    for name in names:
        for chip, entries in table.items():
            if chip.lower() == name or chip.lower().startswith(name):
                temp = _first_current(entries, preferred_labels)
                if temp is not None:
                    return temp
    return None


def _find_label(table: Dict[str, list], needles: Sequence[str]) -> Optional[float]:
    for entries in table.values():
        for entry in entries:
            label = (entry.label or "").lower()
            if any(needle in label for needle in needles):
                temp = parse_temperature(entry.current)
                if temp is not None:
                    return temp
    return None


def core_temperatures(table: Optional[Dict[str, list]] = None) -> List[float]:
    """Per-core CPU temperatures (coretemp "Core N" entries)."""
    table = read_sensor_table() if table is None else table
    temps: List[float] = []
    for chip in ("coretemp", "k10temp", "zenpower"):
        for entry in table.get(chip, []):
            if (entry.label or "").lower().startswith(("core", "ccd")):
                temp = parse_temperature(entry.current)
                if temp is not None:
                    temps.append(temp)
    return temps


class PsutilResolver:
    """Reads CPU, GPU and motherboard temperatures from kernel drivers."""

    name = "psutil"

    def read(self) -> TemperatureReading:
        table = read_sensor_table()
        if not table:
            return {}

        reading: TemperatureReading = {}
        cpu = _find_chip(table, CPU_CHIPS, CPU_PACKAGE_LABELS)
        if cpu is not None:
            reading[Metric.CPU] = cpu

        gpu = _find_chip(table, GPU_CHIPS, ("edge", "junction")) or _find_label(table, ("gpu",))
        if gpu is not None:
            reading[Metric.GPU] = gpu

        mb = _find_label(table, MB_LABELS) or _find_chip(table, MB_CHIPS)
        if mb is not None:
            reading[Metric.MB] = mb
        return reading
