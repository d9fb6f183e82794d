"""
FastAPI Application Entry Point

This module initializes the FastAPI application and configures:
- API routes
- Middleware (logging, CORS)
- Rate limiting
- Health check reflecting Redis connectivity
- Startup/shutdown of the shared services
"""

import logging

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from visit_tracker.api import endpoints
from visit_tracker.api.schemas import HealthResponse
from visit_tracker.core.exceptions import ServiceUnavailableError
from visit_tracker.core.rate_limit import limiter
from visit_tracker.core.service_manager import (
    get_counter_store,
    initialize_services,
    shutdown_services,
)
from visit_tracker.core.setting import settings
from visit_tracker.middleware.logging import add_logging_middleware
from visit_tracker.store.interface import CounterStore

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

app = FastAPI(
    title="Website Visits Tracker",
    description="Per-country visit counters backed by Redis with cached aggregate statistics",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

add_logging_middleware(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceUnavailableError)
async def service_unavailable_handler(request: Request, exc: ServiceUnavailableError):
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)}
    )


@app.get("/", tags=["Health"])
async def root():
    """Root endpoint with service metadata."""
    return {
        "message": "Website Visits Tracker",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health", tags=["Health"], response_model=HealthResponse)
async def health_check(store: CounterStore = Depends(get_counter_store)):
    """
    Health check endpoint for monitoring.

    Returns 503 when Redis does not answer a PING.
    """
    if await store.ping():
        return HealthResponse(status="healthy", redis="connected")

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=HealthResponse(status="unhealthy", redis="disconnected").model_dump()
    )


app.include_router(endpoints.router, tags=["Visits"])


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    await initialize_services()


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on shutdown."""
    await shutdown_services()
