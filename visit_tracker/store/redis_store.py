"""
Redis Counter Store

Redis implementation of the CounterStore interface.

Key layout:
- One string key per country: "<prefix><code>", e.g. "visits:fr"
- Values are integers maintained with INCR

Enumeration uses SCAN with a MATCH pattern and a COUNT hint, then MGET per
batch, so large keyspaces never block Redis the way KEYS would. Clears use
the same enumeration and DEL per batch instead of FLUSHDB, so keys outside
the counter namespace are never touched.
"""

import logging
from typing import AsyncIterator, Dict, List

import redis.asyncio as redis
from redis.exceptions import RedisError

from visit_tracker.core.exceptions import StoreUnavailableError
from visit_tracker.store.interface import CounterStore

logger = logging.getLogger(__name__)


class RedisCounterStore(CounterStore):
    """
    Visit counters stored as plain Redis integers.

    The client must be created with decode_responses=True.
    """

    def __init__(
        self,
        client: redis.Redis,
        key_prefix: str = "visits:",
        scan_count: int = 500
    ):
        """
        Initialize the store.

        Args:
            client: Async Redis client (shared, connection-pooled)
            key_prefix: Namespace prefix for counter keys
            scan_count: COUNT hint for each SCAN call
        """
        self.client = client
        self.key_prefix = key_prefix
        self.scan_count = scan_count

    def _key(self, country_code: str) -> str:
        return f"{self.key_prefix}{country_code}"

    def _code(self, key: str) -> str:
        return key[len(self.key_prefix):]

    async def _scan_batches(self) -> AsyncIterator[List[str]]:
        """
        Walk the counter namespace with a SCAN cursor.

        Yields non-empty batches of keys. SCAN may return a key more than
        once across batches; callers tolerate duplicates.
        """
        cursor = 0
        pattern = f"{self.key_prefix}*"
        while True:
            cursor, keys = await self.client.scan(
                cursor=cursor,
                match=pattern,
                count=self.scan_count
            )
            if keys:
                yield list(keys)
            if int(cursor) == 0:
                break

    async def increment(self, country_code: str) -> int:
        try:
            return int(await self.client.incr(self._key(country_code)))
        except RedisError as e:
            logger.error(f"Failed to increment counter for {country_code}: {e}")
            raise StoreUnavailableError("increment", e) from e

    async def get_count(self, country_code: str) -> int:
        try:
            value = await self.client.get(self._key(country_code))
        except RedisError as e:
            logger.error(f"Failed to read counter for {country_code}: {e}")
            raise StoreUnavailableError("get_count", e) from e
        return int(value) if value is not None else 0

    async def scan_all(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        try:
            async for keys in self._scan_batches():
                values = await self.client.mget(keys)
                for key, value in zip(keys, values):
                    # Deleted between SCAN and MGET
                    if value is None:
                        continue
                    counts[self._code(key)] = int(value)
        except RedisError as e:
            logger.error(f"Failed to scan counters: {e}")
            raise StoreUnavailableError("scan_all", e) from e
        return counts

    async def clear_all(self) -> int:
        removed = 0
        try:
            async for keys in self._scan_batches():
                removed += int(await self.client.delete(*keys))
        except RedisError as e:
            logger.error(f"Failed to clear counters after removing {removed}: {e}")
            raise StoreUnavailableError("clear_all", e) from e
        logger.info(f"Cleared {removed} visit counters")
        return removed

    async def clear_one(self, country_code: str) -> bool:
        try:
            removed = await self.client.delete(self._key(country_code))
        except RedisError as e:
            logger.error(f"Failed to clear counter for {country_code}: {e}")
            raise StoreUnavailableError("clear_one", e) from e
        return bool(removed)

    async def ping(self) -> bool:
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False
