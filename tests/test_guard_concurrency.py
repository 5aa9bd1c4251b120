"""Concurrency tests for ThermalGuard.

evaluate(), cancel() and update_policy() run on different threads in the
service (poller vs. API workers); these tests hammer them together.
"""

import threading
import time

from hwguard.guard import PolicyStore, ThermalGuard
from hwguard.models import GuardState, SensorSnapshot, ThresholdPolicy


class SlowShutdown:
    """Shutdown mechanism that takes a while and counts concurrent calls."""

    def __init__(self, delay: float = 0.05) -> None:
        self.delay = delay
        self.requests = 0
        self.cancels = 0
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def _enter(self) -> None:
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)

    def _exit(self) -> None:
        with self._lock:
            self.active -= 1

    def request_shutdown(self, delay: int, reason: str) -> None:
        self._enter()
        try:
            time.sleep(self.delay)
            with self._lock:
                self.requests += 1
        finally:
            self._exit()

    def cancel_shutdown(self) -> None:
        self._enter()
        try:
            with self._lock:
                self.cancels += 1
        finally:
            self._exit()


class TestConcurrentEvaluate:
    """Tests for simultaneous evaluate() calls."""

    def test_single_shutdown_request_under_contention(self):
        """Test many threads evaluating a hot snapshot issue one shutdown."""
        shutdown = SlowShutdown()
        guard = ThermalGuard(PolicyStore(ThresholdPolicy(enabled=True)), shutdown)
        hot = SensorSnapshot(cpu_temp=99)
        barrier = threading.Barrier(8)
        incidents = []

        def worker():
            barrier.wait()
            result = guard.evaluate(hot)
            if result is not None:
                incidents.append(result)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert shutdown.requests == 1
        assert len(incidents) == 1
        assert guard.state == GuardState.TRIGGERED


class TestEvaluateCancelRace:
    """Tests for cancel() racing a trip."""

    def test_cancel_never_overlaps_shutdown_request(self):
        """Test cancel waits for an in-flight shutdown request to finish."""
        shutdown = SlowShutdown(delay=0.1)
        guard = ThermalGuard(PolicyStore(ThresholdPolicy(enabled=True)), shutdown)
        started = threading.Event()

        def trip():
            started.set()
            guard.evaluate(SensorSnapshot(gpu_temp=100))

        tripper = threading.Thread(target=trip)
        tripper.start()
        started.wait(timeout=1)
        time.sleep(0.02)
        guard.cancel()
        tripper.join(timeout=5)

        assert shutdown.max_active == 1
        assert shutdown.requests == 1
        # Either the cancel ran first (and the trip came after) or it cleared the trip
        if guard.incident is not None:
            assert guard.incident.shutdown_requested is True
        else:
            assert shutdown.cancels == 1

    def test_repeated_trip_cancel_cycles(self):
        """Test alternating trips and cancels keep requests and cancels paired."""
        shutdown = SlowShutdown(delay=0)
        guard = ThermalGuard(PolicyStore(ThresholdPolicy(enabled=True)), shutdown)
        stop = threading.Event()

        def poller():
            while not stop.is_set():
                guard.evaluate(SensorSnapshot(cpu_temp=95))

        thread = threading.Thread(target=poller)
        thread.start()
        for _ in range(50):
            guard.cancel()
        stop.set()
        thread.join(timeout=5)

        # Each request belongs to an incident that was either cancelled or is still live
        live = 1 if guard.incident is not None else 0
        assert shutdown.requests <= shutdown.cancels + live
        assert shutdown.max_active == 1


class TestConcurrentPolicyUpdates:
    """Tests for policy updates during evaluation."""

    def test_updates_and_reads_stay_consistent(self):
        """Test concurrent updates never produce an out-of-range policy."""
        guard = ThermalGuard(PolicyStore(), SlowShutdown(delay=0))
        errors = []

        def updater(value):
            for _ in range(100):
                guard.update_policy({"cpuThreshold": value, "shutdownDelay": 999})

        def reader():
            for _ in range(200):
                policy = guard.policy
                if policy.cpu_threshold not in (80.0, 60.0, 90.0) or policy.shutdown_delay != 60:
                    errors.append(policy)

        threads = [
            threading.Thread(target=updater, args=(60,)),
            threading.Thread(target=updater, args=(90,)),
            threading.Thread(target=reader),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert errors == []
        assert guard.policy.cpu_threshold in (60.0, 90.0)
