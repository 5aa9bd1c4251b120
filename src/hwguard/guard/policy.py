"""In-memory store for the thermal shutdown policy."""

import threading
from typing import Any, Mapping, Optional

import structlog

from hwguard.models.policy import PolicyUpdateResult, ThresholdPolicy, apply_policy_update

log = structlog.get_logger()


class PolicyStore:
    """Holds the current ThresholdPolicy for the process lifetime.

    Reads always succeed. Updates are partial and per-field: see
    :func:`hwguard.models.policy.apply_policy_update`.
    """

    def __init__(self, initial: Optional[ThresholdPolicy] = None) -> None:
        self._policy = initial or ThresholdPolicy()
        self._lock = threading.Lock()

    def get(self) -> ThresholdPolicy:
        """Return the current policy."""
        with self._lock:
            return self._policy

    def update(self, partial: Mapping[str, Any]) -> ThresholdPolicy:
        """Apply the valid fields of ``partial`` and return the resulting policy."""
        with self._lock:
            result: PolicyUpdateResult = apply_policy_update(self._policy, partial)
            self._policy = result.policy

        if result.rejected:
            log.debug("policy_fields_rejected", fields=result.rejected)
        if result.applied:
            log.info("policy_updated", **result.applied)
        return result.policy
