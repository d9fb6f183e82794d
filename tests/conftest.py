"""
Shared test fixtures.

FakeRedis implements the subset of the redis.asyncio client API used by
RedisCounterStore, keeping everything in memory. Each command yields to the
event loop once before touching data, so concurrent callers interleave the
way they would against a real server, while each command itself stays
atomic.
"""

import asyncio
import fnmatch
from typing import Dict, List, Optional

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from visit_tracker.services.country_lookup import StaticCountryLookup
from visit_tracker.services.country_validator import CountryValidator
from visit_tracker.services.stats_cache import StatsCache
from visit_tracker.services.visit_service import VisitService
from visit_tracker.store.redis_store import RedisCounterStore


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis (decode_responses=True)."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.down = False
        self.commands: List[str] = []
        self._scan_positions: Dict[int, str] = {}
        self._next_cursor = 0

    async def _command(self, name: str) -> None:
        self.commands.append(name)
        await asyncio.sleep(0)
        if self.down:
            raise RedisConnectionError("Connection refused")

    async def incr(self, name: str, amount: int = 1) -> int:
        await self._command("INCR")
        value = int(self.data.get(name, "0")) + amount
        self.data[name] = str(value)
        return value

    async def get(self, name: str) -> Optional[str]:
        await self._command("GET")
        return self.data.get(name)

    async def mget(self, keys, *args) -> List[Optional[str]]:
        await self._command("MGET")
        names = list(keys) + list(args)
        return [self.data.get(name) for name in names]

    async def scan(self, cursor: int = 0, match: Optional[str] = None, count: Optional[int] = None):
        """
        Walk keys in sorted order, resuming after the last key returned.

        Like a real SCAN, keys present for the whole walk are returned even
        if other keys are deleted between calls.
        """
        await self._command("SCAN")
        after = self._scan_positions.pop(cursor, None) if cursor else None
        keys = sorted(
            key for key in self.data
            if (match is None or fnmatch.fnmatchcase(key, match))
            and (after is None or key > after)
        )
        page = count or 10
        batch = keys[:page]
        if len(keys) <= page:
            return 0, batch

        self._next_cursor += 1
        self._scan_positions[self._next_cursor] = batch[-1]
        return self._next_cursor, batch

    async def delete(self, *names: str) -> int:
        await self._command("DEL")
        removed = 0
        for name in names:
            if self.data.pop(name, None) is not None:
                removed += 1
        return removed

    async def ping(self) -> bool:
        await self._command("PING")
        return True

    async def aclose(self) -> None:
        pass


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def counter_store(fake_redis) -> RedisCounterStore:
    return RedisCounterStore(fake_redis, key_prefix="visits:", scan_count=3)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def stats_cache(counter_store, clock) -> StatsCache:
    return StatsCache(counter_store, ttl=1.0, clock=clock)


@pytest.fixture
def static_validator(clock) -> CountryValidator:
    static = StaticCountryLookup()
    return CountryValidator(static, static=static, clock=clock)


@pytest.fixture
def visit_service(stats_cache, static_validator) -> VisitService:
    return VisitService(stats_cache, static_validator)
