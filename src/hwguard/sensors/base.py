"""Resolver interface for temperature sources."""

from __future__ import annotations

import math
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from hwguard.models import Metric

TemperatureReading = Dict[Metric, float]
"""Partial mapping of metric to degrees Celsius. Missing keys mean unknown."""


@runtime_checkable
class TemperatureResolver(Protocol):
    """One strategy for reading temperatures.

    Resolvers are tried in order by the ResolverChain. A resolver returns
    whatever subset of metrics it can see; it may raise SensorError (or
    anything else) and the chain treats that as "nothing from this source".
    """

    @property
    def name(self) -> str:
        """Short identifier used for provenance and logging."""
        ...

    def read(self) -> TemperatureReading:
        """Read the temperatures this source knows about."""
        ...


def parse_temperature(value: Any) -> Optional[float]:
    """Convert a raw reading to a float, or None if it is not a usable number.

    Zero is treated as "no reading": several sources report 0 for sensors
    that exist but are not wired up.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        temp = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(temp) or temp <= 0:
        return None
    return round(temp, 1)
