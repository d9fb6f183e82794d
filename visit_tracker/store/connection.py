"""
Redis Connection Management

This module creates the async Redis client used by the counter store.

Key Features:
- Connection pooling: redis-py keeps a pool per client; one client per process
- Bounded socket timeouts so a dead backend fails fast as StoreUnavailableError
- decode_responses=True so keys and values come back as str
"""

import redis.asyncio as redis

from visit_tracker.core.setting import settings


def create_redis_client(
    url: str = settings.REDIS_URL,
    socket_timeout: float = settings.REDIS_SOCKET_TIMEOUT
) -> redis.Redis:
    """
    Create an async Redis client from a connection URL.

    The client connects lazily; the first command opens the connection.
    """
    return redis.from_url(
        url,
        decode_responses=True,
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_timeout,
        health_check_interval=30,
    )
