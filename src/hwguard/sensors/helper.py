"""Temperatures from an operator-supplied helper command.

Some sensors are only reachable through a privileged helper (a vendor
library wrapper, a PowerShell script loading LibreHardwareMonitorLib,
...). The helper must print a single JSON object such as::

    {"cpu_temp": 61.5, "gpu_temp": 54.0, "mb_temp": null}

Blank output means "nothing available" and is not an error.
"""

from __future__ import annotations

import json
import shlex
import subprocess
import sys
from typing import List

from hwguard.exceptions import SensorError
from hwguard.models import Metric

from .base import TemperatureReading, parse_temperature

# JSON keys accepted per metric, in lookup order
_KEYS = {
    Metric.CPU: ("cpu_temp", "cpu"),
    Metric.GPU: ("gpu_temp", "gpu"),
    Metric.MB: ("mb_temp", "mb"),
}


def parse_helper_output(output: str) -> TemperatureReading:
    """Parse the helper's JSON output into a reading.

    Raises:
        SensorError: If the output is not a JSON object.
    """
    text = output.strip()
    if not text:
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise SensorError("helper", f"invalid JSON output: {e}") from e
    if not isinstance(data, dict):
        raise SensorError("helper", "expected a JSON object")

    reading: TemperatureReading = {}
    for metric, keys in _KEYS.items():
        for key in keys:
            temp = parse_temperature(data.get(key))
            if temp is not None:
                reading[metric] = temp
                break
    return reading


class HelperCommandResolver:
    """Runs a helper command and parses its JSON temperatures."""

    name = "helper"

    def __init__(self, command: str, timeout: float = 15.0) -> None:
        self.command = command
        self.timeout = timeout
        self._argv: List[str] = shlex.split(command, posix=not sys.platform.startswith("win"))

    def read(self) -> TemperatureReading:
        try:
            result = subprocess.run(
                self._argv,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            raise SensorError(self.name, f"timed out after {self.timeout}s") from e
        except OSError as e:
            raise SensorError(self.name, f"could not start helper: {e}") from e

        if result.returncode != 0:
            raise SensorError(
                self.name,
                f"exited with status {result.returncode}: {result.stderr.strip()}",
            )
        return parse_helper_output(result.stdout)
