"""
Rate Limiting Configuration

This module provides rate limiting functionality for API endpoints.

Design Decisions:
- Uses slowapi for rate limiting (lightweight, FastAPI-compatible)
- Different limits for different endpoints
- IP-based limiting; limits are per process, like the caches
- RATE_LIMIT_ENABLED=false turns limits off, e.g. for load tests that
  drive far more traffic from one address than any client should
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from visit_tracker.core.setting import settings


def create_limiter(enabled: bool = True) -> Limiter:
    """Build an IP-keyed limiter."""
    return Limiter(key_func=get_remote_address, enabled=enabled)


limiter = create_limiter(enabled=settings.RATE_LIMIT_ENABLED)

# Rate limit configurations per endpoint
# Format: "count/period" (e.g., "10/minute" means 10 requests per minute)
RATE_LIMITS = {
    "visit": "120/minute",  # Visit recording
    "stats": "300/minute",  # Dashboards poll this; the stats cache absorbs the load
    "clear": "10/minute",  # Destructive operations
    "countries": "60/minute",  # Country listing, search and validation
}
