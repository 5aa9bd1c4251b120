"""HTTP client for a running hwguard instance.

Used by the CLI's --status and --cancel flags, and handy from scripts.

Example usage:
    from hwguard.api.client import GuardClient

    with GuardClient("http://127.0.0.1:3005") as client:
        print(client.status())
        client.update(enabled=True, cpuThreshold=85)
        client.cancel()
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import httpx
import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from hwguard.exceptions import ClientError

logger = structlog.get_logger(__name__)

THERMAL_ENDPOINT = "/api/thermal-shutdown"
SYSTEM_ENDPOINT = "/api/system"


def create_retry_decorator(
    max_retries: int = 3,
    min_wait: float = 0.5,
    max_wait: float = 5,
    log_level: int = logging.WARNING,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Create a tenacity retry decorator with exponential backoff.

    Retries connection errors and timeouts only; HTTP error statuses are
    returned to the caller untouched.

    Args:
        max_retries: Maximum number of attempts.
        min_wait: Minimum wait in seconds between attempts.
        max_wait: Maximum wait in seconds between attempts.
        log_level: Log level for retry attempt messages.
    """
    stdlib_logger = logging.getLogger(__name__)

    return retry(
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(multiplier=0.5, min=min_wait, max=max_wait),
        retry=retry_if_exception_type((httpx.ConnectError, httpx.TimeoutException)),
        before_sleep=before_sleep_log(stdlib_logger, log_level),
        reraise=True,
    )


class GuardClient:
    """Thin synchronous client for the hwguard HTTP API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        max_retries: int = 3,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Base URL such as http://127.0.0.1:3005.
            timeout: Per-request timeout in seconds.
            max_retries: Attempts for connection failures.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)
        self._request = create_retry_decorator(max_retries=max_retries)(self._raw_request)

    def __enter__(self) -> "GuardClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _raw_request(self, method: str, endpoint: str, **kwargs: Any) -> httpx.Response:
        return self._client.request(method, endpoint, **kwargs)

    def _call(self, method: str, endpoint: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = self._request(method, endpoint, **kwargs)
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            raise ClientError(f"Cannot connect to hwguard at {self.base_url}: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error:
            detail = data.get("error") if isinstance(data, dict) else None
            raise ClientError(
                f"hwguard returned HTTP {response.status_code} for {method} {endpoint}",
                hint=detail or response.text[:200] or None,
            )
        logger.debug("api_call_complete", method=method, endpoint=endpoint)
        return data

    def status(self) -> Dict[str, Any]:
        """Current guard status."""
        return self._call("GET", THERMAL_ENDPOINT)

    def update(self, **fields: Any) -> Dict[str, Any]:
        """Partially update the policy, e.g. ``update(enabled=True)``."""
        return self._call("POST", THERMAL_ENDPOINT, json=fields)

    def cancel(self) -> Dict[str, Any]:
        """Cancel a pending thermal shutdown."""
        return self._call("DELETE", THERMAL_ENDPOINT)

    def system(self) -> Dict[str, Any]:
        """Latest system report."""
        return self._call("GET", SYSTEM_ENDPOINT)
