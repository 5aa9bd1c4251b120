"""File-based health status for service supervisors.

The poller rewrites the status file after every tick, so its timestamp
doubles as a liveness signal: a file older than a few poll intervals means
the poller has stalled.

Example usage:
    from hwguard.health import update_health_status, HealthStatus

    update_health_status(HealthStatus.STARTING)
    update_health_status(HealthStatus.HEALTHY, {"guard_state": "armed"})
    clear_health_status()
"""

import json
import tempfile
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

log = structlog.get_logger()

HEALTH_FILE = Path(tempfile.gettempdir()) / "hwguard-health"


class HealthStatus(Enum):
    """Health status values for the service.

    Values:
        STARTING: Service is initializing
        HEALTHY: Last poll completed
        UNHEALTHY: Last poll failed
    """

    STARTING = "starting"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


def update_health_status(
    status: HealthStatus,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Write health status to the status file.

    A write failure is logged and otherwise ignored; health reporting must
    never stop the poller.

    Args:
        status: Current health status of the service.
        details: Optional dictionary with additional status information.
    """
    health_data = {
        "status": status.value,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "details": details or {},
    }
    try:
        HEALTH_FILE.write_text(json.dumps(health_data))
    except OSError as e:
        log.warning("health_file_write_failed", path=str(HEALTH_FILE), error=str(e))


def get_health_status() -> Optional[Dict[str, Any]]:
    """Read current health status from file.

    Returns:
        Dictionary with health status data, or None if the file is missing
        or unreadable.
    """
    if not HEALTH_FILE.exists():
        return None
    try:
        return json.loads(HEALTH_FILE.read_text())
    except (json.JSONDecodeError, OSError):
        return None


def clear_health_status() -> None:
    """Remove the health file on shutdown."""
    HEALTH_FILE.unlink(missing_ok=True)
