"""Ordered temperature resolver chain with timeouts and circuit breakers.

Resolvers are tried in order and the first non-absent value wins per
metric. Each resolver gets:
- A bounded timeout (a hung helper resolves to "unknown" for the tick)
- A circuit breaker (fail_max=3, reset_timeout=60s) so a source that
  keeps failing stops costing a full timeout on every poll

Example usage::

    chain = ResolverChain([PsutilResolver(), NvidiaSmiResolver()], timeout=15)
    snapshot = chain.resolve()
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Dict, List, Optional, Sequence

import pybreaker
import structlog

from hwguard.models import Metric, SensorSnapshot

from .base import TemperatureReading, TemperatureResolver, parse_temperature
from .helper import HelperCommandResolver
from .nvidia import NvidiaSmiResolver
from .psutil_source import PsutilResolver

log = structlog.get_logger()

DEFAULT_TIMEOUT = 15.0  # seconds per resolver
CIRCUIT_FAIL_MAX = 3  # open after 3 consecutive failures
CIRCUIT_RESET_TIMEOUT = 60  # try again after 60 seconds


class ResolverTimeoutError(Exception):
    """A resolver did not return within its timeout."""


class CircuitBreakerLoggingListener(pybreaker.CircuitBreakerListener):
    """Logs resolver circuit breaker state changes.

    - WARNING when a circuit opens (source keeps failing)
    - INFO when it closes (source recovered)
    """

    def state_change(
        self,
        cb: pybreaker.CircuitBreaker,
        old_state: pybreaker.CircuitBreakerState,
        new_state: pybreaker.CircuitBreakerState,
    ) -> None:
        if new_state.name == "open":
            log.warning(
                "sensor_circuit_opened",
                resolver=cb.name,
                failures=cb.fail_counter,
                reset_timeout=cb.reset_timeout,
            )
        elif new_state.name == "closed":
            log.info("sensor_circuit_closed", resolver=cb.name)


def create_circuit_breaker(name: str) -> pybreaker.CircuitBreaker:
    """Create the circuit breaker guarding one resolver."""
    return pybreaker.CircuitBreaker(
        name=name,
        fail_max=CIRCUIT_FAIL_MAX,
        reset_timeout=CIRCUIT_RESET_TIMEOUT,
        listeners=[CircuitBreakerLoggingListener()],
    )


class ResolverChain:
    """Combines several resolvers into one SensorSnapshot per call."""

    def __init__(
        self,
        resolvers: Sequence[TemperatureResolver],
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize the chain.

        Args:
            resolvers: Resolvers in priority order.
            timeout: Seconds each resolver may take before it counts as failed.
        """
        self.resolvers = list(resolvers)
        self.timeout = timeout
        self._breakers: Dict[str, pybreaker.CircuitBreaker] = {
            resolver.name: create_circuit_breaker(resolver.name) for resolver in self.resolvers
        }
        # Timed-out reads keep their worker until they return on their own
        self._executor = ThreadPoolExecutor(
            max_workers=max(2, len(self.resolvers) * 2),
            thread_name_prefix="sensor-resolver",
        )

    def breaker(self, name: str) -> pybreaker.CircuitBreaker:
        """Circuit breaker for the resolver called ``name``."""
        return self._breakers[name]

    def _read_with_timeout(self, resolver: TemperatureResolver) -> TemperatureReading:
        future: Future = self._executor.submit(resolver.read)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError:
            future.cancel()
            raise ResolverTimeoutError(f"{resolver.name} timed out after {self.timeout}s")

    def _read(self, resolver: TemperatureResolver) -> Optional[TemperatureReading]:
        """Read one resolver; None means it failed or was skipped."""
        breaker = self._breakers[resolver.name]
        try:
            return breaker.call(self._read_with_timeout, resolver)
        except pybreaker.CircuitBreakerError:
            log.debug("sensor_resolver_skipped", resolver=resolver.name, reason="circuit open")
        except Exception as e:
            log.warning(
                "sensor_resolver_failed",
                resolver=resolver.name,
                error=str(e),
                error_type=type(e).__name__,
            )
        return None

    def resolve(self) -> SensorSnapshot:
        """Resolve all metrics, first non-absent value per metric wins."""
        values: Dict[Metric, float] = {}
        sources: Dict[str, str] = {}

        for resolver in self.resolvers:
            if len(values) == len(Metric):
                break
            reading = self._read(resolver)
            if not reading:
                continue
            for metric, raw in reading.items():
                temp = parse_temperature(raw)
                if metric in values or temp is None:
                    continue
                values[metric] = temp
                sources[metric.value] = resolver.name

        snapshot = SensorSnapshot(
            cpu_temp=values.get(Metric.CPU),
            gpu_temp=values.get(Metric.GPU),
            mb_temp=values.get(Metric.MB),
            sources=sources,
        )
        log.debug(
            "temperatures_resolved",
            cpu=snapshot.cpu_temp,
            gpu=snapshot.gpu_temp,
            mb=snapshot.mb_temp,
            sources=sources,
        )
        return snapshot

    def close(self) -> None:
        """Release the worker pool without waiting for hung reads."""
        self._executor.shutdown(wait=False, cancel_futures=True)


def build_default_chain(
    helper_command: Optional[str] = None,
    nvidia_smi_enabled: bool = True,
    timeout: float = DEFAULT_TIMEOUT,
) -> ResolverChain:
    """Build the standard chain: psutil, then helper, then nvidia-smi."""
    resolvers: List[TemperatureResolver] = [PsutilResolver()]
    if helper_command:
        resolvers.append(HelperCommandResolver(helper_command, timeout=timeout))
    if nvidia_smi_enabled:
        resolvers.append(NvidiaSmiResolver(timeout=min(timeout, 10.0)))
    return ResolverChain(resolvers, timeout=timeout)
