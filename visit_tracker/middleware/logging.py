"""
Access Logging Middleware

One log line per request on the "visit_tracker.access" logger:

    POST /visit/FR 200 1.84ms IP:203.0.113.7 country=fr

Visit recording requests carry the normalized country code so traffic per
country can be followed in the logs; a code that fails normalization is
logged as sent. Server errors (5xx) are logged at warning level so they
stand out from normal traffic.
"""

import logging
import re
import time
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from visit_tracker.core.exceptions import InvalidInputError
from visit_tracker.core.validators import normalize_country_code

logger = logging.getLogger("visit_tracker.access")

VISIT_PATH = re.compile(r"^/visit/(?P<country>[^/]+)$")


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop when behind a proxy, else the peer address."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    return request.client.host if request.client else "unknown"


def visit_country(path: str) -> Optional[str]:
    """Country code of a visit recording path, or None for other routes."""
    match = VISIT_PATH.match(path)
    if match is None:
        return None

    raw = match.group("country")
    try:
        return normalize_country_code(raw)
    except InvalidInputError:
        return raw


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request and sets the X-Process-Time header."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start

        path = request.url.path
        line = (
            f"{request.method} {path} {response.status_code} "
            f"{elapsed * 1000:.2f}ms IP:{get_client_ip(request)}"
        )
        country = visit_country(path)
        if country is not None:
            line += f" country={country}"

        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, line)

        response.headers["X-Process-Time"] = f"{elapsed:.6f}"
        return response


def add_logging_middleware(app):
    app.add_middleware(LoggingMiddleware)
