"""GPU temperature and inventory via nvidia-smi."""

from __future__ import annotations

import shutil
import subprocess
from typing import List, Optional

from hwguard.exceptions import SensorError
from hwguard.models import GraphicsController, Metric

from .base import TemperatureReading, parse_temperature

NVIDIA_SMI = "nvidia-smi"


def _query(fields: List[str], timeout: float) -> List[List[str]]:
    """Run an nvidia-smi CSV query and return one row per GPU.

    Raises:
        SensorError: If nvidia-smi is missing, fails or times out.
    """
    if shutil.which(NVIDIA_SMI) is None:
        raise SensorError("nvidia-smi", "nvidia-smi not found in PATH")
    try:
        output = subprocess.check_output(
            [
                NVIDIA_SMI,
                f"--query-gpu={','.join(fields)}",
                "--format=csv,noheader,nounits",
            ],
            stderr=subprocess.DEVNULL,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise SensorError("nvidia-smi", f"timed out after {timeout}s") from e
    except (subprocess.CalledProcessError, OSError) as e:
        raise SensorError("nvidia-smi", str(e)) from e

    rows = []
    for line in output.strip().splitlines():
        if line.strip():
            rows.append([part.strip() for part in line.split(",")])
    return rows


def query_gpus(timeout: float = 10.0) -> List[GraphicsController]:
    """Describe every NVIDIA GPU: model, VRAM and temperature."""
    controllers: List[GraphicsController] = []
    for row in _query(["name", "memory.total", "temperature.gpu"], timeout):
        if len(row) < 3:
            continue
        vram: Optional[int]
        try:
            vram = int(float(row[1]))
        except ValueError:
            vram = None
        controllers.append(
            GraphicsController(
                vendor="NVIDIA",
                model=row[0],
                vram=vram,
                temperature=parse_temperature(row[2]),
            )
        )
    return controllers


class NvidiaSmiResolver:
    """Reads the first NVIDIA GPU's core temperature."""

    name = "nvidia-smi"

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout

    def read(self) -> TemperatureReading:
        rows = _query(["temperature.gpu"], self.timeout)
        if not rows:
            return {}
        temp = parse_temperature(rows[0][0])
        return {Metric.GPU: temp} if temp is not None else {}
