"""Shared fixtures for hwguard tests."""

from datetime import datetime, timezone
from typing import List, Optional, Tuple

import pytest

from hwguard.exceptions import ShutdownCommandError
from hwguard.guard import PolicyStore, ThermalGuard
from hwguard.models import ThresholdPolicy

FIXED_NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeShutdown:
    """Records shutdown requests instead of talking to the OS."""

    def __init__(
        self,
        request_error: Optional[Exception] = None,
        cancel_error: Optional[Exception] = None,
    ) -> None:
        self.requests: List[Tuple[int, str]] = []
        self.reboots: List[Tuple[int, str]] = []
        self.cancels = 0
        self.request_error = request_error
        self.cancel_error = cancel_error

    def request_shutdown(self, delay: int, reason: str) -> None:
        if self.request_error is not None:
            raise self.request_error
        self.requests.append((delay, reason))

    def request_reboot(self, delay: int, reason: str) -> None:
        if self.request_error is not None:
            raise self.request_error
        self.reboots.append((delay, reason))

    def cancel_shutdown(self) -> None:
        self.cancels += 1
        if self.cancel_error is not None:
            raise self.cancel_error


@pytest.fixture(autouse=True)
def isolated_health_file(tmp_path, monkeypatch):
    """Keep health status writes inside the test's temp dir."""
    path = tmp_path / "hwguard-health"
    monkeypatch.setattr("hwguard.health.HEALTH_FILE", path)
    return path


@pytest.fixture
def fake_shutdown_cls():
    """The FakeShutdown class, for tests that need custom failures."""
    return FakeShutdown


@pytest.fixture
def fake_shutdown():
    """A shutdown mechanism that always succeeds."""
    return FakeShutdown()


@pytest.fixture
def armed_guard(fake_shutdown):
    """An enabled guard with default thresholds (80/85/75, delay 60)."""
    store = PolicyStore(ThresholdPolicy(enabled=True))
    return ThermalGuard(store, fake_shutdown, clock=lambda: FIXED_NOW)


@pytest.fixture
def failing_shutdown():
    """A shutdown mechanism whose request command fails."""
    return FakeShutdown(
        request_error=ShutdownCommandError(
            "shutdown command exited with status 1",
            command="shutdown -h +1",
            details="Access denied",
        )
    )
