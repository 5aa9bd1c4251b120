"""Tests for GuardClient against a mocked transport."""

import json

import httpx
import pytest

from hwguard.api.client import GuardClient
from hwguard.exceptions import ClientError

STATUS = {
    "state": "armed",
    "enabled": True,
    "cpuThreshold": 80.0,
    "gpuThreshold": 85.0,
    "mbThreshold": 75.0,
    "shutdownDelay": 60,
    "triggered": False,
    "triggeredAt": None,
    "triggeredBy": None,
    "triggeredTemp": None,
}


def make_client(handler, max_retries=1):
    return GuardClient(
        "http://127.0.0.1:3005/",
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
    )


class TestGuardClient:
    """Tests for GuardClient request handling."""

    def test_status(self):
        """Test status() GETs the thermal endpoint."""
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json=STATUS)

        with make_client(handler) as client:
            assert client.status() == STATUS

        assert seen == [("GET", "/api/thermal-shutdown")]

    def test_update_sends_json(self):
        """Test update() POSTs the given fields."""
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json=STATUS)

        with make_client(handler) as client:
            client.update(enabled=True, cpuThreshold=85)

        assert bodies == [{"enabled": True, "cpuThreshold": 85}]

    def test_cancel_uses_delete(self):
        """Test cancel() sends DELETE."""
        methods = []

        def handler(request):
            methods.append(request.method)
            return httpx.Response(200, json=STATUS)

        with make_client(handler) as client:
            client.cancel()

        assert methods == ["DELETE"]

    def test_system(self):
        """Test system() GETs the system endpoint."""

        def handler(request):
            assert request.url.path == "/api/system"
            return httpx.Response(200, json={"cpu": {"brand": "X"}})

        with make_client(handler) as client:
            assert client.system()["cpu"]["brand"] == "X"

    def test_http_error_raises_client_error(self):
        """Test an error status raises ClientError with the server message."""

        def handler(request):
            return httpx.Response(400, json={"error": "Invalid request body"})

        with make_client(handler) as client:
            with pytest.raises(ClientError) as exc_info:
                client.update(enabled="yes")

        assert "HTTP 400" in exc_info.value.message
        assert exc_info.value.hint == "Invalid request body"
        assert exc_info.value.exit_code == 2

    def test_connection_failure_raises_client_error(self):
        """Test a refused connection raises ClientError."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with make_client(handler) as client:
            with pytest.raises(ClientError, match="Cannot connect"):
                client.status()

    def test_connection_failure_retried(self):
        """Test connection errors are retried before succeeding."""
        attempts = []

        def handler(request):
            attempts.append(1)
            if len(attempts) == 1:
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200, json=STATUS)

        with make_client(handler, max_retries=2) as client:
            assert client.status()["state"] == "armed"

        assert len(attempts) == 2
