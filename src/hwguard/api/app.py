"""FastAPI application factory.

The guard, poller and shutdown commander are created once at startup and
handed to the app; route handlers reach them through ``app.state``.
"""

from fastapi import FastAPI

from hwguard import __version__
from hwguard.guard import ThermalGuard
from hwguard.scheduler import GuardPoller
from hwguard.shutdown import SystemShutdown

from .routes import router


def create_app(
    guard: ThermalGuard,
    poller: GuardPoller,
    power: SystemShutdown,
    power_api_enabled: bool = True,
) -> FastAPI:
    """Build the HTTP API around already-constructed components."""
    app = FastAPI(
        title="hwguard",
        version=__version__,
        description="Hardware sensor monitor with thermal shutdown guard",
    )
    app.state.guard = guard
    app.state.poller = poller
    app.state.power = power
    app.state.power_api_enabled = power_api_enabled
    app.include_router(router)
    return app
