"""Thermal guard state machine.

The guard consumes one SensorSnapshot per poll and decides whether the
host is overheating. On the first tick where any present metric meets its
threshold it records an Incident and asks the OS to shut down after the
configured grace period. Until the operator cancels, further ticks are
no-ops, so there is at most one shutdown request per incident.

States:
    DISARMED   policy.enabled is False; evaluate() does nothing
    ARMED      enabled and no incident
    TRIGGERED  enabled and an incident is live

Disabling the policy while TRIGGERED does not cancel the shutdown that
was already issued and does not clear the incident; only cancel() does.

Example usage:
    guard = ThermalGuard(PolicyStore(), SystemShutdown())
    guard.update_policy({"enabled": True})
    guard.evaluate(SensorSnapshot(cpu_temp=85.0))
    guard.cancel()
"""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, List, Mapping, Optional, Protocol, runtime_checkable

import structlog

from hwguard.exceptions import NoPendingShutdownError, ShutdownCommandError
from hwguard.guard.policy import PolicyStore
from hwguard.models import GuardState, GuardStatus, Incident, Metric, SensorSnapshot, ThresholdPolicy

log = structlog.get_logger()


@runtime_checkable
class ShutdownIssuer(Protocol):
    """External shutdown mechanism the guard drives.

    Both methods raise ShutdownCommandError on failure.
    """

    def request_shutdown(self, delay: int, reason: str) -> None:
        """Schedule an OS shutdown after ``delay`` seconds."""
        ...

    def cancel_shutdown(self) -> None:
        """Abort a pending OS shutdown."""
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _fmt_temp(value: float) -> str:
    return f"{value:g}"


def shutdown_reason(incident: Incident, delay: int) -> str:
    """Human-readable message passed to the OS shutdown command."""
    return (
        f"THERMAL PROTECTION: {incident.label.upper()} temperature reached "
        f"{_fmt_temp(incident.triggered_temp)}°C (threshold: {_fmt_temp(incident.threshold)}°C). "
        f"System shutting down in {delay} seconds."
    )


class ThermalGuard:
    """Serialized state machine deciding when to shut the host down.

    evaluate(), cancel() and update_policy() share one lock. The shutdown
    request is issued while holding it so a concurrent cancel can only run
    before the incident exists or after the command has been sent.
    """

    def __init__(
        self,
        policy_store: PolicyStore,
        shutdown: ShutdownIssuer,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the guard.

        Args:
            policy_store: Owner of the live ThresholdPolicy.
            shutdown: External shutdown mechanism.
            clock: Source of UTC timestamps for incidents.
        """
        self._policy_store = policy_store
        self._shutdown = shutdown
        self._clock = clock
        self._incident: Optional[Incident] = None
        self._lock = threading.RLock()

    @property
    def policy(self) -> ThresholdPolicy:
        """The current policy."""
        return self._policy_store.get()

    @property
    def incident(self) -> Optional[Incident]:
        """The live incident, if any."""
        with self._lock:
            return self._incident

    @property
    def state(self) -> GuardState:
        """Current guard state derived from the policy and the incident."""
        with self._lock:
            return self._state(self._policy_store.get())

    def _state(self, policy: ThresholdPolicy) -> GuardState:
        if not policy.enabled:
            return GuardState.DISARMED
        if self._incident is not None:
            return GuardState.TRIGGERED
        return GuardState.ARMED

    def status(self) -> GuardStatus:
        """Policy and incident flattened into one read model."""
        with self._lock:
            policy = self._policy_store.get()
            return GuardStatus.build(self._state(policy), policy, self._incident)

    def update_policy(self, partial: Mapping[str, Any]) -> GuardStatus:
        """Apply a partial policy update and return the resulting status.

        Invalid or unknown fields are ignored; this never raises.
        """
        with self._lock:
            previous = self._state(self._policy_store.get())
            self._policy_store.update(partial)
            status = self.status()

        if status.state != previous:
            log.info(
                "guard_state_changed",
                previous=previous.value,
                state=status.state.value,
                shutdown_pending=status.triggered,
            )
        return status

    def evaluate(self, snapshot: SensorSnapshot) -> Optional[Incident]:
        """Check one snapshot against the policy.

        Metrics are tested in cpu, gpu, mb order with ``temp >= threshold``;
        absent metrics are skipped. The recorded temperature is that of the
        first metric that tripped.

        Returns:
            The new Incident if this call tripped the guard, otherwise None.
        """
        with self._lock:
            policy = self._policy_store.get()
            if not policy.enabled or self._incident is not None:
                return None

            tripped: List[Metric] = []
            for metric in Metric:
                temp = snapshot.get(metric)
                if temp is not None and temp >= policy.threshold_for(metric):
                    tripped.append(metric)

            if not tripped:
                return None

            first = tripped[0]
            incident = Incident(
                triggered_at=self._clock(),
                triggered_by=tuple(tripped),
                triggered_temp=snapshot.get(first),  # type: ignore[arg-type]
                threshold=policy.threshold_for(first),
            )
            self._incident = incident

            log.warning(
                "thermal_threshold_exceeded",
                triggered_by=incident.label,
                temperature=incident.triggered_temp,
                threshold=incident.threshold,
                source=snapshot.source_of(first),
                shutdown_delay=policy.shutdown_delay,
            )

            try:
                self._shutdown.request_shutdown(
                    policy.shutdown_delay, shutdown_reason(incident, policy.shutdown_delay)
                )
            except ShutdownCommandError as e:
                # The incident stays recorded; the OS may not actually be shutting down
                log.error(
                    "shutdown_command_failed",
                    error=e.message,
                    command=e.command,
                    details=e.details,
                )
                return incident

            incident = replace(incident, shutdown_requested=True)
            self._incident = incident
            log.warning("shutdown_requested", delay=policy.shutdown_delay, triggered_by=incident.label)
            return incident

    def cancel(self) -> GuardStatus:
        """Cancel the pending shutdown and clear the incident.

        The OS cancel is best-effort: a failure (commonly "nothing pending")
        is logged and the incident is cleared regardless.
        """
        with self._lock:
            had_incident = self._incident is not None
            try:
                self._shutdown.cancel_shutdown()
            except NoPendingShutdownError:
                log.warning("shutdown_cancel_nothing_pending")
            except ShutdownCommandError as e:
                log.warning("shutdown_cancel_failed", error=e.message, details=e.details)

            self._incident = None
            status = self.status()

        log.info("incident_cleared", had_incident=had_incident, state=status.state.value)
        return status
