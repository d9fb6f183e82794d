"""
Counter store module with abstraction layer.

This module provides:
- CounterStore interface: Abstract base class for counter backends
- RedisCounterStore: Redis implementation (default)
- create_redis_client: Async Redis client factory

To add a new backend:
1. Create a new store class inheriting from CounterStore
2. Implement all abstract methods
3. Construct it in core/service_manager.py instead of RedisCounterStore
"""

from visit_tracker.store.interface import CounterStore
from visit_tracker.store.redis_store import RedisCounterStore
from visit_tracker.store.connection import create_redis_client

__all__ = [
    "CounterStore",
    "RedisCounterStore",
    "create_redis_client",
]
