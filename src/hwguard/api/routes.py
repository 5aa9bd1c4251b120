"""HTTP routes for guard state, policy updates, system snapshot and power actions."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from hwguard import __version__
from hwguard.exceptions import NoPendingShutdownError, ShutdownCommandError
from hwguard.guard import ThermalGuard
from hwguard.models import PowerAction
from hwguard.scheduler import GuardPoller
from hwguard.shutdown import SystemShutdown

router = APIRouter(prefix="/api")
log = structlog.get_logger()

INVALID_BODY = {"error": "Invalid request body"}
POWER_DELAY_DEFAULT = 10
POWER_DELAY_MAX = 300


def get_guard(request: Request) -> ThermalGuard:
    return request.app.state.guard


def get_poller(request: Request) -> GuardPoller:
    return request.app.state.poller


def get_power(request: Request) -> SystemShutdown:
    return request.app.state.power


async def read_json_object(request: Request) -> Optional[Dict[str, Any]]:
    """Parse the request body as a JSON object, or None if it is not one."""
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


def clamp_power_delay(value: Any) -> int:
    """Parse a manual power delay: unparseable or zero falls back to 10, capped to [0, 300]."""
    try:
        parsed = int(float(value))
    except (TypeError, ValueError, OverflowError):
        parsed = 0
    delay = parsed or POWER_DELAY_DEFAULT
    return max(0, min(POWER_DELAY_MAX, delay))


@router.get("/thermal-shutdown")
def get_thermal_status(guard: ThermalGuard = Depends(get_guard)) -> Dict[str, Any]:
    """Current policy and incident, flattened."""
    return guard.status().to_api()


@router.post("/thermal-shutdown")
async def update_thermal_policy(request: Request, guard: ThermalGuard = Depends(get_guard)):
    """Partially update the policy; invalid fields are ignored one by one."""
    body = await read_json_object(request)
    if body is None:
        return JSONResponse(INVALID_BODY, status_code=status.HTTP_400_BAD_REQUEST)
    guard_status = await run_in_threadpool(guard.update_policy, body)
    return guard_status.to_api()


@router.delete("/thermal-shutdown")
def cancel_thermal_shutdown(guard: ThermalGuard = Depends(get_guard)) -> Dict[str, Any]:
    """Abort the pending shutdown (best-effort) and clear the incident."""
    return guard.cancel().to_api()


@router.get("/system")
def get_system(poller: GuardPoller = Depends(get_poller)):
    """Latest published sensor and host reading."""
    report = poller.latest()
    if report is None:
        return JSONResponse(
            {"error": "No sensor reading available yet"},
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    return report.to_api()


@router.get("/health")
def get_health(
    guard: ThermalGuard = Depends(get_guard),
    poller: GuardPoller = Depends(get_poller),
) -> Dict[str, Any]:
    last_tick = poller.last_tick
    return {
        "status": "healthy" if last_tick is not None else "starting",
        "lastTick": last_tick.isoformat() if last_tick else None,
        "guardState": guard.state.value,
        "version": __version__,
    }


@router.post("/power")
async def power_action(request: Request, power: SystemShutdown = Depends(get_power)):
    """Manual shutdown, reboot or cancel.

    Independent of the thermal guard: cancelling here does not clear a
    guard incident.
    """
    if not request.app.state.power_api_enabled:
        return JSONResponse(
            {"error": "Power actions are disabled"},
            status_code=status.HTTP_403_FORBIDDEN,
        )

    body = await read_json_object(request)
    if body is None:
        return JSONResponse(INVALID_BODY, status_code=status.HTTP_400_BAD_REQUEST)

    try:
        action = PowerAction(body.get("action"))
    except ValueError:
        return JSONResponse(
            {"error": "Invalid action. Use: shutdown, reboot, or cancel"},
            status_code=status.HTTP_400_BAD_REQUEST,
        )
    delay = clamp_power_delay(body.get("delay", POWER_DELAY_DEFAULT))

    try:
        if action is PowerAction.SHUTDOWN:
            await run_in_threadpool(
                power.request_shutdown, delay, "Remote shutdown initiated from hwguard"
            )
            return {
                "success": True,
                "message": f"Shutdown initiated. System will shut down in {delay} seconds.",
                "action": action.value,
                "delay": delay,
            }
        if action is PowerAction.REBOOT:
            await run_in_threadpool(
                power.request_reboot, delay, "Remote reboot initiated from hwguard"
            )
            return {
                "success": True,
                "message": f"Reboot initiated. System will restart in {delay} seconds.",
                "action": action.value,
                "delay": delay,
            }
        await run_in_threadpool(power.cancel_shutdown)
        return {
            "success": True,
            "message": "Pending shutdown/reboot has been cancelled.",
            "action": action.value,
        }
    except NoPendingShutdownError:
        return {"success": False, "message": "No pending shutdown/reboot to cancel."}
    except ShutdownCommandError as e:
        log.error("power_command_failed", action=action.value, error=e.message, details=e.details)
        return JSONResponse(
            {"error": "Failed to execute power command", "details": e.details or e.message},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
