"""Thermal shutdown policy model and partial-update validation."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ConfigDict, Field

from .base import ApiModel
from .enums import Metric

THRESHOLD_MIN = 30.0
THRESHOLD_MAX = 120.0
DELAY_MIN = 10
DELAY_MAX = 300


class ThresholdPolicy(ApiModel):
    """Operator-configured guard policy.

    Lives in memory for the process lifetime. Instances are immutable;
    updates produce a new instance via :func:`apply_policy_update`.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False, description="Whether the guard evaluates readings")
    cpu_threshold: float = Field(default=80.0, ge=THRESHOLD_MIN, le=THRESHOLD_MAX)
    gpu_threshold: float = Field(default=85.0, ge=THRESHOLD_MIN, le=THRESHOLD_MAX)
    mb_threshold: float = Field(default=75.0, ge=THRESHOLD_MIN, le=THRESHOLD_MAX)
    shutdown_delay: int = Field(default=60, ge=DELAY_MIN, le=DELAY_MAX)

    def threshold_for(self, metric: Metric) -> float:
        """Return the configured threshold for ``metric``."""
        return getattr(self, f"{metric.value}_threshold")


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid threshold
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints beyond float range
        return False


def _coerce_enabled(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _coerce_threshold(value: Any) -> Optional[float]:
    if _is_number(value) and THRESHOLD_MIN <= value <= THRESHOLD_MAX:
        return float(value)
    return None


def _coerce_delay(value: Any) -> Optional[int]:
    if not _is_number(value) or float(value) != int(value):
        return None
    if DELAY_MIN <= value <= DELAY_MAX:
        return int(value)
    return None


# field name -> (accepted keys, validator)
_UPDATABLE_FIELDS: Dict[str, tuple] = {
    "enabled": (("enabled",), _coerce_enabled),
    "cpu_threshold": (("cpuThreshold", "cpu_threshold"), _coerce_threshold),
    "gpu_threshold": (("gpuThreshold", "gpu_threshold"), _coerce_threshold),
    "mb_threshold": (("mbThreshold", "mb_threshold"), _coerce_threshold),
    "shutdown_delay": (("shutdownDelay", "shutdown_delay"), _coerce_delay),
}


@dataclass
class PolicyUpdateResult:
    """Outcome of a partial policy update."""

    policy: ThresholdPolicy
    applied: Dict[str, Any] = field(default_factory=dict)
    rejected: List[str] = field(default_factory=list)


def apply_policy_update(
    policy: ThresholdPolicy, partial: Mapping[str, Any]
) -> PolicyUpdateResult:
    """Apply the valid fields of ``partial`` to ``policy``.

    Each recognized field is checked on its own: a wrong type or an
    out-of-range value leaves that field at its previous value while the
    other fields still apply. Unknown keys are ignored. Never raises.

    Args:
        policy: Current policy.
        partial: Mapping with any subset of enabled, cpuThreshold,
            gpuThreshold, mbThreshold, shutdownDelay (snake_case accepted).

    Returns:
        PolicyUpdateResult with the new policy and the applied/rejected keys.
    """
    if not isinstance(partial, Mapping):
        return PolicyUpdateResult(policy=policy)

    applied: Dict[str, Any] = {}
    rejected: List[str] = []

    for name, (keys, coerce) in _UPDATABLE_FIELDS.items():
        key = next((k for k in keys if k in partial), None)
        if key is None:
            continue
        value = coerce(partial[key])
        if value is None:
            rejected.append(key)
        else:
            applied[name] = value

    if applied:
        policy = policy.model_copy(update=applied)
    return PolicyUpdateResult(policy=policy, applied=applied, rejected=rejected)
