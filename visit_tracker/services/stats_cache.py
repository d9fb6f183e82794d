"""
Stats Aggregation Cache

This service serves aggregated per-country visit counts under high read
concurrency while keeping results at most one TTL stale.

Design Decisions:
- One snapshot per cache instance, stamped with the time its scan started
- Single-flight: at most one backend scan runs at a time per instance;
  concurrent readers await the same asyncio.Task instead of polling
- Readers that arrive during a recomputation wait for its result rather
  than receiving the expired snapshot
- Visits do not invalidate (undercounting by at most one TTL is accepted)
- Clears invalidate immediately and bump a generation counter, so a scan
  that overlapped a clear is never cached and never served to a reader
  that arrived after the clear
- Clock and TTL are injected so the cache can be driven in tests
"""

import asyncio
import logging
import time
from typing import Callable, Dict, Optional

from visit_tracker.core.exceptions import StoreUnavailableError
from visit_tracker.core.validators import normalize_country_code
from visit_tracker.store.interface import CounterStore

logger = logging.getLogger(__name__)


def _consume_exception(task: asyncio.Task) -> None:
    # Waiters may all have been cancelled; mark the failure as retrieved
    if not task.cancelled():
        task.exception()


class StatsCache:
    """
    Read-through cache in front of CounterStore.scan_all().

    Constructed once per process and shared by all request handlers.
    """

    def __init__(
        self,
        store: CounterStore,
        ttl: float = 1.0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the cache.

        Args:
            store: Counter store to aggregate from
            ttl: Seconds a snapshot stays fresh
            clock: Monotonic time source
        """
        self.store = store
        self.ttl = ttl
        self._clock = clock

        self._snapshot: Optional[Dict[str, int]] = None
        self._cached_at = 0.0
        self._generation = 0

        self._lock = asyncio.Lock()
        self._inflight: Optional[asyncio.Task] = None
        self._inflight_generation = 0

        self.scan_count = 0

    def _fresh_snapshot(self) -> Optional[Dict[str, int]]:
        if self._snapshot is None:
            return None
        if self._clock() - self._cached_at >= self.ttl:
            return None
        return self._snapshot

    async def get_stats(self) -> Dict[str, int]:
        """
        Get aggregated visit counts per country.

        Returns the cached snapshot while it is fresh. Otherwise joins the
        in-flight scan, or starts one if none is running.

        Returns:
            Copy of the country code to count mapping

        Raises:
            StoreUnavailableError: If the scan fails
        """
        snapshot = self._fresh_snapshot()
        if snapshot is not None:
            return dict(snapshot)

        while True:
            async with self._lock:
                snapshot = self._fresh_snapshot()
                if snapshot is not None:
                    return dict(snapshot)

                if self._inflight is None:
                    self._inflight_generation = self._generation
                    self._inflight = asyncio.ensure_future(
                        self._refresh(self._generation)
                    )
                    self._inflight.add_done_callback(_consume_exception)

                task = self._inflight
                current = self._inflight_generation == self._generation

            # Shield so a cancelled reader does not cancel the shared scan
            if current:
                return dict(await asyncio.shield(task))

            # The scan started before a clear; wait it out and rescan
            try:
                await asyncio.shield(task)
            except StoreUnavailableError:
                logger.debug("Scan that overlapped a clear failed; rescanning")

    async def _refresh(self, generation: int) -> Dict[str, int]:
        started_at = self._clock()
        self.scan_count += 1
        try:
            snapshot = await self.store.scan_all()
        finally:
            self._inflight = None

        if generation == self._generation:
            self._snapshot = snapshot
            self._cached_at = started_at
        else:
            logger.debug("Discarding stats snapshot that overlapped a clear")

        return snapshot

    def invalidate(self) -> None:
        """Drop the cached snapshot; the next read rescans."""
        self._generation += 1
        self._snapshot = None

    async def record_visit(self, country_code: str) -> int:
        """
        Record one visit for a country.

        Does not invalidate the snapshot.

        Returns:
            New visit count for the country
        """
        code = normalize_country_code(country_code)
        return await self.store.increment(code)

    async def clear_all(self) -> int:
        """
        Delete every counter and invalidate the snapshot.

        Returns:
            Number of counters removed
        """
        try:
            removed = await self.store.clear_all()
        finally:
            self.invalidate()
        return removed

    async def clear_one(self, country_code: str) -> bool:
        """
        Delete one country's counter and invalidate the snapshot.

        Returns:
            True if the counter existed
        """
        code = normalize_country_code(country_code)
        try:
            removed = await self.store.clear_one(code)
        finally:
            self.invalidate()
        return removed
