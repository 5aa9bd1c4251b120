"""Tests for the HTTP API routes."""

import pytest
from fastapi.testclient import TestClient

from hwguard import __version__
from hwguard.api import create_app
from hwguard.api.routes import clamp_power_delay
from hwguard.exceptions import NoPendingShutdownError, ShutdownCommandError
from hwguard.guard import PolicyStore, ThermalGuard
from hwguard.models import CpuInfo, HostInfo, SensorSnapshot
from hwguard.scheduler import GuardPoller


class StaticTemperatures:
    def __init__(self, snapshot: SensorSnapshot) -> None:
        self.snapshot = snapshot

    def read(self) -> SensorSnapshot:
        return self.snapshot


class StaticHost:
    def collect(self) -> HostInfo:
        return HostInfo(cpu=CpuInfo(brand="Test CPU", cores=8))


@pytest.fixture
def readings():
    """Mutable holder for the snapshot the poller will see."""
    return StaticTemperatures(SensorSnapshot(cpu_temp=45.0, gpu_temp=40.0, mb_temp=30.0))


@pytest.fixture
def guard(fake_shutdown):
    return ThermalGuard(PolicyStore(), fake_shutdown)


@pytest.fixture
def poller(guard, readings):
    return GuardPoller(guard, readings, StaticHost())


@pytest.fixture
def client(guard, poller, fake_shutdown):
    app = create_app(guard=guard, poller=poller, power=fake_shutdown)
    return TestClient(app)


class TestGetThermalShutdown:
    """Tests for GET /api/thermal-shutdown."""

    def test_default_status(self, client):
        """Test the initial status is disarmed with default thresholds."""
        response = client.get("/api/thermal-shutdown")

        assert response.status_code == 200
        assert response.json() == {
            "state": "disarmed",
            "enabled": False,
            "cpuThreshold": 80.0,
            "gpuThreshold": 85.0,
            "mbThreshold": 75.0,
            "shutdownDelay": 60,
            "triggered": False,
            "triggeredAt": None,
            "triggeredBy": None,
            "triggeredTemp": None,
        }


class TestPostThermalShutdown:
    """Tests for POST /api/thermal-shutdown."""

    def test_enable_and_set_thresholds(self, client):
        """Test a partial update is applied and the new status returned."""
        response = client.post(
            "/api/thermal-shutdown", json={"enabled": True, "cpuThreshold": 90}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "armed"
        assert data["cpuThreshold"] == 90
        assert data["gpuThreshold"] == 85

    def test_invalid_field_ignored(self, client):
        """Test an out-of-range threshold is ignored while others apply."""
        response = client.post(
            "/api/thermal-shutdown", json={"cpuThreshold": 999, "shutdownDelay": 30}
        )

        assert response.status_code == 200
        assert response.json()["cpuThreshold"] == 80
        assert response.json()["shutdownDelay"] == 30

    def test_oversized_integer_ignored(self, client):
        """Test an integer beyond float range is ignored while others apply."""
        response = client.post(
            "/api/thermal-shutdown",
            json={"cpuThreshold": 10**400, "shutdownDelay": 10**400, "gpuThreshold": 90},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["cpuThreshold"] == 80
        assert data["shutdownDelay"] == 60
        assert data["gpuThreshold"] == 90

    def test_malformed_json_returns_400(self, client):
        """Test a body that is not JSON gets 400."""
        response = client.post(
            "/api/thermal-shutdown",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}

    def test_non_object_body_returns_400(self, client):
        """Test a JSON array body gets 400."""
        response = client.post("/api/thermal-shutdown", json=[1, 2])

        assert response.status_code == 400

    def test_empty_object_changes_nothing(self, client):
        """Test {} returns the unchanged status."""
        response = client.post("/api/thermal-shutdown", json={})

        assert response.status_code == 200
        assert response.json()["enabled"] is False


class TestDeleteThermalShutdown:
    """Tests for DELETE /api/thermal-shutdown."""

    def test_cancel_clears_incident(self, client, guard, poller, readings, fake_shutdown):
        """Test cancel after a trip clears the incident and aborts the OS shutdown."""
        guard.update_policy({"enabled": True})
        readings.snapshot = SensorSnapshot(cpu_temp=92.0)
        poller.tick()
        assert client.get("/api/thermal-shutdown").json()["triggered"] is True

        response = client.delete("/api/thermal-shutdown")

        assert response.status_code == 200
        data = response.json()
        assert data["triggered"] is False
        assert data["state"] == "armed"
        assert fake_shutdown.cancels == 1

    def test_cancel_tolerates_os_failure(self, client, guard, fake_shutdown):
        """Test an OS cancel failure still returns 200."""
        fake_shutdown.cancel_error = NoPendingShutdownError(details="(1116)")

        response = client.delete("/api/thermal-shutdown")

        assert response.status_code == 200
        assert response.json()["triggered"] is False


class TestTriggeredStatus:
    """Tests for the status after a trip via the poller."""

    def test_triggered_fields(self, client, guard, poller, readings):
        """Test triggered fields are filled in after a trip."""
        client.post("/api/thermal-shutdown", json={"enabled": True})
        readings.snapshot = SensorSnapshot(cpu_temp=81.5, gpu_temp=90.0)
        poller.tick()

        data = client.get("/api/thermal-shutdown").json()

        assert data["state"] == "triggered"
        assert data["triggeredBy"] == "cpu+gpu"
        assert data["triggeredTemp"] == 81.5
        assert isinstance(data["triggeredAt"], int)


class TestGetSystem:
    """Tests for GET /api/system."""

    def test_503_before_first_tick(self, client):
        """Test the endpoint is unavailable until something was polled."""
        response = client.get("/api/system")

        assert response.status_code == 503

    def test_latest_report(self, client, poller):
        """Test the last published report is served."""
        poller.tick()

        response = client.get("/api/system")

        assert response.status_code == 200
        data = response.json()
        assert data["cpu"]["brand"] == "Test CPU"
        assert data["cpu"]["temperature"] == 45.0
        assert data["motherboard"]["temperature"] == 30.0
        assert data["temperatureSources"] == {}


class TestHealth:
    """Tests for GET /api/health."""

    def test_starting_then_healthy(self, client, poller):
        """Test health reports starting until the first tick."""
        before = client.get("/api/health").json()
        poller.tick()
        after = client.get("/api/health").json()

        assert before["status"] == "starting"
        assert before["lastTick"] is None
        assert after["status"] == "healthy"
        assert after["guardState"] == "disarmed"
        assert after["version"] == __version__


class TestPower:
    """Tests for POST /api/power."""

    def test_shutdown(self, client, fake_shutdown):
        """Test a manual shutdown passes the delay and a reason."""
        response = client.post("/api/power", json={"action": "shutdown", "delay": 30})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Shutdown initiated. System will shut down in 30 seconds.",
            "action": "shutdown",
            "delay": 30,
        }
        assert fake_shutdown.requests == [(30, "Remote shutdown initiated from hwguard")]

    def test_reboot_default_delay(self, client, fake_shutdown):
        """Test a missing delay falls back to 10 seconds."""
        response = client.post("/api/power", json={"action": "reboot"})

        assert response.json()["delay"] == 10
        assert fake_shutdown.reboots[0][0] == 10

    def test_cancel(self, client, fake_shutdown):
        """Test a manual cancel calls the OS cancel."""
        response = client.post("/api/power", json={"action": "cancel"})

        assert response.json()["success"] is True
        assert fake_shutdown.cancels == 1

    def test_cancel_nothing_pending(self, client, fake_shutdown):
        """Test cancel with nothing pending reports success false with 200."""
        fake_shutdown.cancel_error = NoPendingShutdownError()

        response = client.post("/api/power", json={"action": "cancel"})

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "message": "No pending shutdown/reboot to cancel.",
        }

    def test_invalid_action(self, client):
        """Test an unknown action gets 400."""
        response = client.post("/api/power", json={"action": "hibernate"})

        assert response.status_code == 400

    def test_command_failure_returns_500(self, client, fake_shutdown):
        """Test an OS failure returns 500 with details."""
        fake_shutdown.request_error = ShutdownCommandError(
            "shutdown command exited with status 1", details="Access is denied."
        )

        response = client.post("/api/power", json={"action": "shutdown"})

        assert response.status_code == 500
        assert response.json() == {
            "error": "Failed to execute power command",
            "details": "Access is denied.",
        }

    def test_disabled_power_api(self, guard, poller, fake_shutdown):
        """Test power actions are refused when disabled in settings."""
        app = create_app(guard=guard, poller=poller, power=fake_shutdown, power_api_enabled=False)

        response = TestClient(app).post("/api/power", json={"action": "shutdown"})

        assert response.status_code == 403
        assert fake_shutdown.requests == []

    def test_power_cancel_leaves_guard_incident(self, client, guard, poller, readings):
        """Test a manual cancel does not clear a thermal incident."""
        guard.update_policy({"enabled": True})
        readings.snapshot = SensorSnapshot(mb_temp=80.0)
        poller.tick()

        client.post("/api/power", json={"action": "cancel"})

        assert guard.incident is not None


class TestClampPowerDelay:
    """Tests for clamp_power_delay()."""

    @pytest.mark.parametrize(
        "raw,expected",
        [(30, 30), ("45", 45), (0, 10), ("abc", 10), (None, 10), (1000, 300), (-5, 0), (12.7, 12)],
    )
    def test_values(self, raw, expected):
        """Test parsing, default and clamping."""
        assert clamp_power_delay(raw) == expected
