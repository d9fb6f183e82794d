"""
Service Manager

This module manages the process-wide service instances.
They are created once on application startup and shared across requests.

Design:
- One Redis client, counter store, stats cache and country validator per
  process; each replica keeps its own caches
- Initialized on application startup, released on shutdown
- Exposed to endpoints as FastAPI dependencies, so tests can override them
"""

import logging
from typing import Optional

import httpx
import redis.asyncio as redis
from redis.exceptions import RedisError

from visit_tracker.core.exceptions import ServiceUnavailableError
from visit_tracker.core.setting import settings
from visit_tracker.services.country_lookup import (
    FallbackCountryLookup,
    RemoteCountryLookup,
    StaticCountryLookup,
)
from visit_tracker.services.country_validator import CountryValidator
from visit_tracker.services.stats_cache import StatsCache
from visit_tracker.services.visit_service import VisitService
from visit_tracker.store import CounterStore, RedisCounterStore, create_redis_client

logger = logging.getLogger(__name__)

# Global instances (initialized on startup)
_redis_client: Optional[redis.Redis] = None
_http_client: Optional[httpx.AsyncClient] = None
_store: Optional[CounterStore] = None
_stats_cache: Optional[StatsCache] = None
_country_validator: Optional[CountryValidator] = None
_visit_service: Optional[VisitService] = None


def get_counter_store() -> CounterStore:
    """
    Get the counter store instance.

    Raises:
        ServiceUnavailableError: If services are not initialized
    """
    if _store is None:
        raise ServiceUnavailableError("counter_store")
    return _store


def get_stats_cache() -> StatsCache:
    """Get the stats cache instance."""
    if _stats_cache is None:
        raise ServiceUnavailableError("stats_cache")
    return _stats_cache


def get_country_validator() -> CountryValidator:
    """Get the country validator instance."""
    if _country_validator is None:
        raise ServiceUnavailableError("country_validator")
    return _country_validator


def get_visit_service() -> VisitService:
    """Get the visit service instance."""
    if _visit_service is None:
        raise ServiceUnavailableError("visit_service")
    return _visit_service


async def initialize_services() -> None:
    """
    Create the Redis client, HTTP client and caches.

    Redis is pinged once so a missing backend shows up in the logs at
    startup; the service still starts and /health reports the failure.
    """
    global _redis_client, _http_client, _store, _stats_cache
    global _country_validator, _visit_service

    if _store is not None:
        logger.warning("Services already initialized")
        return

    _redis_client = create_redis_client(settings.REDIS_URL, settings.REDIS_SOCKET_TIMEOUT)
    _store = RedisCounterStore(
        _redis_client,
        key_prefix=settings.COUNTER_KEY_PREFIX,
        scan_count=settings.REDIS_SCAN_COUNT
    )

    if await _store.ping():
        logger.info("Connected to Redis")
    else:
        logger.error("Redis is not reachable; counter operations will fail until it is")

    _stats_cache = StatsCache(_store, ttl=settings.STATS_CACHE_TTL_SECONDS)

    _http_client = httpx.AsyncClient(
        base_url=settings.COUNTRY_API_URL,
        timeout=settings.COUNTRY_API_TIMEOUT_SECONDS
    )
    static = StaticCountryLookup()
    lookup = FallbackCountryLookup(
        primary=RemoteCountryLookup(_http_client, timeout=settings.COUNTRY_API_TIMEOUT_SECONDS),
        fallback=static
    )
    _country_validator = CountryValidator(
        lookup,
        static=static,
        ttl=settings.COUNTRY_CACHE_TTL_SECONDS,
        max_size=settings.COUNTRY_CACHE_MAX_SIZE,
        listing_retry=settings.COUNTRY_LISTING_RETRY_SECONDS
    )

    _visit_service = VisitService(_stats_cache, _country_validator)

    logger.info(
        f"Services initialized: "
        f"stats_ttl={settings.STATS_CACHE_TTL_SECONDS}s, "
        f"country_ttl={settings.COUNTRY_CACHE_TTL_SECONDS}s, "
        f"country_api={settings.COUNTRY_API_URL}"
    )


async def shutdown_services() -> None:
    """Close the HTTP and Redis clients and drop the shared instances."""
    global _redis_client, _http_client, _store, _stats_cache
    global _country_validator, _visit_service

    if _http_client is not None:
        try:
            await _http_client.aclose()
        except httpx.HTTPError as e:
            logger.warning(f"Failed to close HTTP client: {e}")

    if _redis_client is not None:
        try:
            await _redis_client.aclose()
        except RedisError as e:
            logger.warning(f"Failed to close Redis client: {e}")
        logger.info("Redis connection closed")

    _redis_client = None
    _http_client = None
    _store = None
    _stats_cache = None
    _country_validator = None
    _visit_service = None
