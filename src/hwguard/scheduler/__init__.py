"""Poll scheduling for sensors and the thermal guard."""

from hwguard.scheduler.runner import (
    GuardPoller,
    SchedulerError,
    build_report,
    guard_snapshot,
)

__all__ = [
    "GuardPoller",
    "SchedulerError",
    "build_report",
    "guard_snapshot",
]
