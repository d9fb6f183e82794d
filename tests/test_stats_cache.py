"""
Tests for the stats aggregation cache.

Covers TTL freshness, single-flight recomputation under concurrent readers,
invalidation on clears and failure propagation.
"""

import asyncio
import gc
from typing import Dict

import pytest

from visit_tracker.core.exceptions import InvalidInputError, StoreUnavailableError
from visit_tracker.services.stats_cache import StatsCache
from visit_tracker.store.interface import CounterStore


class GatedStore(CounterStore):
    """
    In-memory store whose scans block until the gate opens.

    A scan copies the data when it starts, like a real scan that has
    already walked the keyspace, and tracks how many scans overlap.
    """

    def __init__(self):
        self.data: Dict[str, int] = {}
        self.gate = asyncio.Event()
        self.gate.set()
        self.scans = 0
        self.active_scans = 0
        self.max_active_scans = 0
        self.fail_scans = False
        self.fail_next_scans = 0

    async def increment(self, country_code: str) -> int:
        self.data[country_code] = self.data.get(country_code, 0) + 1
        return self.data[country_code]

    async def get_count(self, country_code: str) -> int:
        return self.data.get(country_code, 0)

    async def scan_all(self) -> Dict[str, int]:
        self.scans += 1
        self.active_scans += 1
        self.max_active_scans = max(self.max_active_scans, self.active_scans)
        try:
            snapshot = dict(self.data)
            await self.gate.wait()
            if self.fail_scans:
                raise StoreUnavailableError("scan_all")
            if self.fail_next_scans:
                self.fail_next_scans -= 1
                raise StoreUnavailableError("scan_all")
            return snapshot
        finally:
            self.active_scans -= 1

    async def clear_all(self) -> int:
        removed = len(self.data)
        self.data.clear()
        return removed

    async def clear_one(self, country_code: str) -> bool:
        return self.data.pop(country_code, None) is not None

    async def ping(self) -> bool:
        return True


@pytest.fixture
def gated_store() -> GatedStore:
    return GatedStore()


@pytest.fixture
def gated_cache(gated_store, clock) -> StatsCache:
    return StatsCache(gated_store, ttl=1.0, clock=clock)


class TestReadThrough:
    """Snapshot freshness and TTL."""

    @pytest.mark.asyncio
    async def test_two_visits_then_stats(self, stats_cache):
        await stats_cache.record_visit("fr")
        await stats_cache.record_visit("FR ")

        assert await stats_cache.get_stats() == {"fr": 2}

    @pytest.mark.asyncio
    async def test_repeated_reads_within_ttl_scan_once(self, gated_cache, gated_store, clock):
        gated_store.data["fr"] = 1

        for _ in range(10):
            assert await gated_cache.get_stats() == {"fr": 1}
            clock.advance(0.05)

        assert gated_store.scans == 1
        assert gated_cache.scan_count == 1

    @pytest.mark.asyncio
    async def test_visits_are_not_visible_until_ttl_expires(self, gated_cache, gated_store, clock):
        gated_store.data["fr"] = 1
        await gated_cache.get_stats()

        await gated_cache.record_visit("fr")
        assert await gated_cache.get_stats() == {"fr": 1}

        clock.advance(1.0)
        assert await gated_cache.get_stats() == {"fr": 2}
        assert gated_store.scans == 2

    @pytest.mark.asyncio
    async def test_returned_mapping_is_a_copy(self, gated_cache, gated_store):
        gated_store.data["fr"] = 1

        stats = await gated_cache.get_stats()
        stats["fr"] = 999

        assert await gated_cache.get_stats() == {"fr": 1}

    @pytest.mark.asyncio
    async def test_record_visit_rejects_malformed_code(self, gated_cache, gated_store):
        with pytest.raises(InvalidInputError):
            await gated_cache.record_visit("usa")

        assert gated_store.data == {}


class TestSingleFlight:
    """At most one concurrent backend scan per cache instance."""

    @pytest.mark.asyncio
    async def test_concurrent_readers_share_one_scan(self, gated_cache, gated_store):
        gated_store.data.update({"fr": 2, "us": 5})
        gated_store.gate.clear()

        readers = [asyncio.create_task(gated_cache.get_stats()) for _ in range(100)]
        await asyncio.sleep(0.01)

        assert gated_store.scans == 1

        gated_store.gate.set()
        results = await asyncio.gather(*readers)

        assert all(result == {"fr": 2, "us": 5} for result in results)
        assert gated_store.scans == 1
        assert gated_store.max_active_scans == 1

    @pytest.mark.asyncio
    async def test_cancelled_reader_does_not_cancel_shared_scan(self, gated_cache, gated_store):
        gated_store.data["fr"] = 3
        gated_store.gate.clear()

        first = asyncio.create_task(gated_cache.get_stats())
        second = asyncio.create_task(gated_cache.get_stats())
        await asyncio.sleep(0.01)

        first.cancel()
        gated_store.gate.set()

        assert await second == {"fr": 3}
        with pytest.raises(asyncio.CancelledError):
            await first
        assert gated_store.scans == 1

    @pytest.mark.asyncio
    async def test_failed_scan_raises_to_every_waiter(self, gated_cache, gated_store):
        gated_store.fail_scans = True
        gated_store.gate.clear()

        readers = [asyncio.create_task(gated_cache.get_stats()) for _ in range(5)]
        await asyncio.sleep(0.01)
        gated_store.gate.set()

        results = await asyncio.gather(*readers, return_exceptions=True)

        assert all(isinstance(result, StoreUnavailableError) for result in results)
        assert gated_store.scans == 1

        # Nothing cached; the next read scans again
        gated_store.fail_scans = False
        assert await gated_cache.get_stats() == {}
        assert gated_store.scans == 2

    @pytest.mark.asyncio
    async def test_failed_scan_with_no_waiters_is_not_reported_unretrieved(
        self, gated_cache, gated_store
    ):
        unhandled = []
        loop = asyncio.get_running_loop()
        previous_handler = loop.get_exception_handler()
        loop.set_exception_handler(lambda _, context: unhandled.append(context))
        try:
            gated_store.fail_scans = True
            gated_store.gate.clear()

            readers = [asyncio.create_task(gated_cache.get_stats()) for _ in range(3)]
            await asyncio.sleep(0.01)
            for reader in readers:
                reader.cancel()
            await asyncio.gather(*readers, return_exceptions=True)

            gated_store.gate.set()
            await asyncio.sleep(0.01)
            gc.collect()
            await asyncio.sleep(0)
        finally:
            loop.set_exception_handler(previous_handler)

        assert gated_store.scans == 1
        assert not [
            context for context in unhandled
            if "never retrieved" in context.get("message", "")
        ]


class TestInvalidation:
    """Clears are visible to the next read even inside the TTL window."""

    @pytest.mark.asyncio
    async def test_clear_all_within_ttl(self, stats_cache):
        await stats_cache.record_visit("fr")
        await stats_cache.record_visit("us")
        assert await stats_cache.get_stats() == {"fr": 1, "us": 1}

        assert await stats_cache.clear_all() == 2

        assert await stats_cache.get_stats() == {}

    @pytest.mark.asyncio
    async def test_clear_one_omits_country(self, stats_cache):
        await stats_cache.record_visit("fr")
        await stats_cache.record_visit("fr")
        await stats_cache.record_visit("us")
        assert await stats_cache.get_stats() == {"fr": 2, "us": 1}

        assert await stats_cache.clear_one("fr") is True

        stats = await stats_cache.get_stats()
        assert "fr" not in stats
        assert stats == {"us": 1}

    @pytest.mark.asyncio
    async def test_clear_one_of_missing_country(self, stats_cache):
        assert await stats_cache.clear_one("jp") is False

    @pytest.mark.asyncio
    async def test_scan_overlapping_clear_is_not_served_after_clear(self, gated_cache, gated_store):
        gated_store.data["fr"] = 2
        gated_store.gate.clear()

        before_clear = asyncio.create_task(gated_cache.get_stats())
        await asyncio.sleep(0.01)

        await gated_cache.clear_all()
        after_clear = asyncio.create_task(gated_cache.get_stats())
        await asyncio.sleep(0.01)

        # The second scan must wait for the first one to finish
        assert gated_store.scans == 1

        gated_store.gate.set()

        assert await before_clear == {"fr": 2}
        assert await after_clear == {}
        assert gated_store.scans == 2
        assert gated_store.max_active_scans == 1

        # The post-clear snapshot is the one cached
        assert await gated_cache.get_stats() == {}
        assert gated_store.scans == 2

    @pytest.mark.asyncio
    async def test_failed_scan_overlapping_clear_is_retried_for_later_readers(
        self, gated_cache, gated_store
    ):
        gated_store.data["fr"] = 2
        gated_store.fail_next_scans = 1
        gated_store.gate.clear()

        before_clear = asyncio.create_task(gated_cache.get_stats())
        await asyncio.sleep(0.01)

        await gated_cache.clear_all()
        after_clear = asyncio.create_task(gated_cache.get_stats())
        await asyncio.sleep(0.01)

        gated_store.gate.set()

        # Only the reader that joined the failed scan sees its error
        with pytest.raises(StoreUnavailableError):
            await before_clear
        assert await after_clear == {}
        assert gated_store.scans == 2
        assert gated_store.max_active_scans == 1

    @pytest.mark.asyncio
    async def test_failed_clear_still_invalidates(self, stats_cache, fake_redis):
        await stats_cache.record_visit("fr")
        await stats_cache.get_stats()
        scans = stats_cache.scan_count

        fake_redis.down = True
        with pytest.raises(StoreUnavailableError):
            await stats_cache.clear_all()

        with pytest.raises(StoreUnavailableError):
            await stats_cache.get_stats()
        assert stats_cache.scan_count == scans + 1
