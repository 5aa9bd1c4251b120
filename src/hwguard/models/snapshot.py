"""Per-tick temperature snapshot."""

from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import ConfigDict, Field

from .base import ApiModel
from .enums import Metric


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SensorSnapshot(ApiModel):
    """Resolved temperatures for one poll.

    Any field may be None when no resolver produced a value for it this
    tick; the guard skips absent metrics. ``sources`` records which
    resolver supplied each present value and is informational only.
    """

    model_config = ConfigDict(frozen=True)

    cpu_temp: Optional[float] = Field(default=None, description="CPU temperature in Celsius")
    gpu_temp: Optional[float] = Field(default=None, description="GPU temperature in Celsius")
    mb_temp: Optional[float] = Field(
        default=None, description="Motherboard temperature in Celsius"
    )
    sources: Dict[str, str] = Field(
        default_factory=dict, description="Metric name -> resolver that supplied it"
    )
    taken_at: datetime = Field(default_factory=_utcnow, description="When the reading was taken")

    def get(self, metric: Metric) -> Optional[float]:
        """Return the reading for ``metric`` or None if absent."""
        return getattr(self, f"{metric.value}_temp")

    def source_of(self, metric: Metric) -> Optional[str]:
        """Return the resolver name that supplied ``metric``."""
        return self.sources.get(metric.value)

    @property
    def is_empty(self) -> bool:
        """True when no metric could be resolved."""
        return all(self.get(metric) is None for metric in Metric)
