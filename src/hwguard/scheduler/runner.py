"""Sensor poller driven by APScheduler."""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from apscheduler.events import EVENT_JOB_ERROR
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from hwguard.guard import ThermalGuard
from hwguard.health import HealthStatus, update_health_status
from hwguard.models import HostInfo, SensorSnapshot, SystemReport
from hwguard.sensors import CachedTemperatureSource, HostCollector

log = structlog.get_logger()

POLL_JOB_ID = "sensor_poll"


class SchedulerError(Exception):
    """Raised when the poller cannot be started."""

    pass


def build_report(host: HostInfo, snapshot: SensorSnapshot) -> SystemReport:
    """Merge resolved temperatures into the host metadata.

    The first GPU without its own reading and the motherboard block take
    the resolved values; the CPU block always shows the resolved CPU value.
    """
    report = SystemReport(
        **host.model_dump(),
        collected_at=snapshot.taken_at,
        temperature_sources=dict(snapshot.sources),
    )
    report.cpu.temperature = snapshot.cpu_temp
    report.motherboard.temperature = snapshot.mb_temp
    if report.graphics:
        for controller in report.graphics:
            if controller.temperature is None:
                controller.temperature = snapshot.gpu_temp
                break
    return report


def guard_snapshot(report: SystemReport, snapshot: SensorSnapshot) -> SensorSnapshot:
    """Snapshot the guard evaluates: GPU falls back to the first GPU's reading."""
    if snapshot.gpu_temp is not None or not report.graphics:
        return snapshot
    gpu_temp = report.graphics[0].temperature
    if gpu_temp is None:
        return snapshot
    sources = dict(snapshot.sources)
    sources["gpu"] = "host"
    return snapshot.model_copy(update={"gpu_temp": gpu_temp, "sources": sources})


class GuardPoller:
    """Polls sensors on a fixed interval and feeds the thermal guard.

    Each tick resolves temperatures (through the TTL cache), collects host
    metadata, publishes the merged SystemReport for API readers and then
    calls ThermalGuard.evaluate(). If only the host metadata fails, the
    resolved snapshot is still evaluated. A failing tick is logged and the next
    one runs as scheduled.
    """

    def __init__(
        self,
        guard: ThermalGuard,
        temperatures: CachedTemperatureSource,
        host: HostCollector,
        interval: float = 3.0,
    ) -> None:
        """Initialize the poller.

        Args:
            guard: Thermal guard to evaluate each snapshot.
            temperatures: Cached temperature source.
            host: Host metadata collector.
            interval: Seconds between ticks.
        """
        self.guard = guard
        self.temperatures = temperatures
        self.host = host
        self.interval = interval
        self._scheduler: Optional[BackgroundScheduler] = None
        self._latest: Optional[SystemReport] = None
        self._latest_lock = threading.Lock()
        self._last_tick: Optional[datetime] = None

    def _create_scheduler(self) -> BackgroundScheduler:
        """Create configured BackgroundScheduler."""
        job_defaults = {
            "coalesce": True,  # Combine missed runs into one
            "misfire_grace_time": max(1, int(self.interval)),
            "max_instances": 1,  # A slow tick never overlaps the next
        }
        return BackgroundScheduler(timezone="UTC", job_defaults=job_defaults)

    def latest(self) -> Optional[SystemReport]:
        """Last published report, or None before the first tick."""
        with self._latest_lock:
            return self._latest

    @property
    def last_tick(self) -> Optional[datetime]:
        """UTC time of the last completed tick."""
        with self._latest_lock:
            return self._last_tick

    def tick(self) -> Optional[SystemReport]:
        """Run one poll cycle.

        The guard sees every resolved snapshot even when host metadata
        collection fails; the host-graphics GPU fallback only applies when
        collection succeeded.

        Returns:
            The published report, or None if the tick failed.
        """
        try:
            snapshot = self.temperatures.read()
        except Exception as e:
            log.error("poll_failed", error=str(e), error_type=type(e).__name__)
            update_health_status(HealthStatus.UNHEALTHY, {"error": str(e)})
            return None

        try:
            report = build_report(self.host.collect(), snapshot)
        except Exception as e:
            log.error("host_collection_failed", error=str(e), error_type=type(e).__name__)
            self.guard.evaluate(snapshot)
            update_health_status(
                HealthStatus.UNHEALTHY,
                {"error": str(e), "guard_state": self.guard.state.value},
            )
            return None

        with self._latest_lock:
            self._latest = report
            self._last_tick = datetime.now(timezone.utc)

        self.guard.evaluate(guard_snapshot(report, snapshot))

        update_health_status(
            HealthStatus.HEALTHY,
            {
                "guard_state": self.guard.state.value,
                "sensors_resolved": len(snapshot.sources),
            },
        )
        return report

    def start(self) -> None:
        """Run one tick immediately, then poll in the background.

        Raises:
            SchedulerError: If the poller is already running.
        """
        if self._scheduler is not None and self._scheduler.running:
            raise SchedulerError("Poller is already running")

        self.tick()

        self._scheduler = self._create_scheduler()
        self._scheduler.add_job(
            self.tick,
            IntervalTrigger(seconds=self.interval),
            id=POLL_JOB_ID,
        )

        def on_job_error(event: Any) -> None:
            log.error("job_failed", error=str(event.exception))

        self._scheduler.add_listener(on_job_error, EVENT_JOB_ERROR)
        self._scheduler.start()
        log.info("poller_started", interval=self.interval)

    def shutdown(self) -> None:
        """Stop polling and wait for a tick in progress to finish."""
        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=True)
            log.info("poller_stopped", reason="explicit shutdown")
        self._scheduler = None
