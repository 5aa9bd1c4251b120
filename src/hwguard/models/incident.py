"""Thermal incident record and the flattened guard status read model."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from pydantic import Field

from .base import ApiModel
from .enums import GuardState, Metric
from .policy import ThresholdPolicy


@dataclass(frozen=True)
class Incident:
    """One triggered thermal event, from trip to cancellation.

    Attributes:
        triggered_at: UTC time the guard tripped.
        triggered_by: Metrics that met their threshold, in evaluation order.
        triggered_temp: Reading of the first metric in ``triggered_by``.
        threshold: Threshold of the first metric in ``triggered_by``.
        shutdown_requested: Whether the OS accepted the shutdown command.
    """

    triggered_at: datetime
    triggered_by: Tuple[Metric, ...]
    triggered_temp: float
    threshold: float
    shutdown_requested: bool = False

    @property
    def label(self) -> str:
        """Combined metric tag such as ``cpu+gpu``."""
        return "+".join(metric.value for metric in self.triggered_by)

    @property
    def triggered_at_ms(self) -> int:
        """Trigger time as epoch milliseconds."""
        return int(self.triggered_at.timestamp() * 1000)


class GuardStatus(ApiModel):
    """Policy fields and incident fields flattened into one object."""

    state: GuardState
    enabled: bool
    cpu_threshold: float
    gpu_threshold: float
    mb_threshold: float
    shutdown_delay: int
    triggered: bool = False
    triggered_at: Optional[int] = Field(default=None, description="Epoch milliseconds")
    triggered_by: Optional[str] = None
    triggered_temp: Optional[float] = None

    @classmethod
    def build(
        cls,
        state: GuardState,
        policy: ThresholdPolicy,
        incident: Optional[Incident],
    ) -> "GuardStatus":
        """Combine a policy and the optional live incident."""
        return cls(
            state=state,
            enabled=policy.enabled,
            cpu_threshold=policy.cpu_threshold,
            gpu_threshold=policy.gpu_threshold,
            mb_threshold=policy.mb_threshold,
            shutdown_delay=policy.shutdown_delay,
            triggered=incident is not None,
            triggered_at=incident.triggered_at_ms if incident else None,
            triggered_by=incident.label if incident else None,
            triggered_temp=incident.triggered_temp if incident else None,
        )
