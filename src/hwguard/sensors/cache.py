"""Short-lived cache in front of the resolver chain.

Some resolvers take seconds (a helper process loading a vendor library),
so readings are reused for ``ttl`` seconds. When a refresh is already
running on another thread, callers get the previous snapshot instead of
queueing behind the slow read.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

import structlog

from hwguard.models import SensorSnapshot

from .chain import ResolverChain

log = structlog.get_logger()

DEFAULT_TTL = 2.5  # seconds


class CachedTemperatureSource:
    """Serves the last resolved SensorSnapshot while it is fresh."""

    def __init__(
        self,
        chain: ResolverChain,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            chain: Resolver chain used to refresh readings.
            ttl: Seconds a snapshot is served without refreshing.
            clock: Monotonic time source.
        """
        self.chain = chain
        self.ttl = ttl
        self._clock = clock
        self._snapshot: Optional[SensorSnapshot] = None
        self._fetched_at: float = 0.0
        self._state_lock = threading.Lock()
        self._refresh_lock = threading.Lock()

    def _fresh(self) -> Optional[SensorSnapshot]:
        with self._state_lock:
            if self._snapshot is not None and self._clock() - self._fetched_at < self.ttl:
                return self._snapshot
            return None

    def cached(self) -> Optional[SensorSnapshot]:
        """Last snapshot regardless of age, or None before the first read."""
        with self._state_lock:
            return self._snapshot

    def read(self) -> SensorSnapshot:
        """Return a fresh snapshot, refreshing through the chain if needed."""
        snapshot = self._fresh()
        if snapshot is not None:
            return snapshot

        if not self._refresh_lock.acquire(blocking=False):
            stale = self.cached()
            if stale is not None:
                log.debug("temperature_cache_stale_served")
                return stale
            # Nothing cached yet: wait for the refresh in flight
            self._refresh_lock.acquire()

        try:
            snapshot = self._fresh()
            if snapshot is not None:
                return snapshot
            snapshot = self.chain.resolve()
            with self._state_lock:
                self._snapshot = snapshot
                self._fetched_at = self._clock()
            return snapshot
        finally:
            self._refresh_lock.release()
