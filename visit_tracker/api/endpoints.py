"""
FastAPI Endpoints for the Visit Tracker Service

This module defines all REST API endpoints with minimal logic.
Endpoints only handle:
- Rate limiting
- Error handling and HTTP responses
- Delegating to the service layer

Design Principles:
- Thin endpoints: Only rate limiting and error translation
- Service layer: All business logic
- Error handling: InvalidInputError -> 400, StoreUnavailableError -> 503
"""

from dataclasses import asdict
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from visit_tracker.api.schemas import (
    ClearAllResponse,
    ClearOneResponse,
    CountryResponse,
    CountryValidationResponse,
    VisitResponse,
)
from visit_tracker.core.exceptions import InvalidInputError, StoreUnavailableError
from visit_tracker.core.rate_limit import limiter, RATE_LIMITS
from visit_tracker.core.service_manager import (
    get_country_validator,
    get_stats_cache,
    get_visit_service,
)
from visit_tracker.core.validators import normalize_country_code
from visit_tracker.services.country_validator import CountryValidator
from visit_tracker.services.stats_cache import StatsCache
from visit_tracker.services.visit_service import VisitService


router = APIRouter()


def bad_request(error: InvalidInputError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=str(error)
    )


def store_unavailable(error: StoreUnavailableError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=str(error)
    )


@router.post(
    "/visit/{country}",
    response_model=VisitResponse,
    summary="Record a visit",
    description="Increments the visit counter for a country after validating the code"
)
@limiter.limit(RATE_LIMITS["visit"])
async def record_visit(
    country: str,
    request: Request,  # Required for rate limiting (slowapi expects parameter named 'request')
    visit_service: VisitService = Depends(get_visit_service)
) -> VisitResponse:
    """
    Record one visit from a country.

    Raises:
        HTTPException 400: If the code is malformed or not a known country
        HTTPException 503: If the counter store is unavailable
        HTTPException 429: If rate limit exceeded
    """
    try:
        visits = await visit_service.record_visit(country)
    except InvalidInputError as e:
        raise bad_request(e)
    except StoreUnavailableError as e:
        raise store_unavailable(e)

    return VisitResponse(country=normalize_country_code(country), visits=visits)


@router.get(
    "/stats",
    response_model=Dict[str, int],
    summary="Get visit statistics",
    description="Returns visit counts per country; served from a cache at most one second stale"
)
@limiter.limit(RATE_LIMITS["stats"])
async def get_stats(
    request: Request,
    stats_cache: StatsCache = Depends(get_stats_cache)
) -> Dict[str, int]:
    try:
        return await stats_cache.get_stats()
    except StoreUnavailableError as e:
        raise store_unavailable(e)


@router.delete(
    "/stats",
    response_model=ClearAllResponse,
    summary="Clear all visit statistics"
)
@limiter.limit(RATE_LIMITS["clear"])
async def clear_all_stats(
    request: Request,
    stats_cache: StatsCache = Depends(get_stats_cache)
) -> ClearAllResponse:
    try:
        removed = await stats_cache.clear_all()
    except StoreUnavailableError as e:
        raise store_unavailable(e)

    return ClearAllResponse(removed=removed)


@router.delete(
    "/stats/{country}",
    response_model=ClearOneResponse,
    summary="Clear one country's visit statistics"
)
@limiter.limit(RATE_LIMITS["clear"])
async def clear_country_stats(
    country: str,
    request: Request,
    stats_cache: StatsCache = Depends(get_stats_cache)
) -> ClearOneResponse:
    try:
        removed = await stats_cache.clear_one(country)
    except InvalidInputError as e:
        raise bad_request(e)
    except StoreUnavailableError as e:
        raise store_unavailable(e)

    return ClearOneResponse(country=normalize_country_code(country), removed=removed)


@router.get(
    "/countries",
    response_model=List[CountryResponse],
    summary="List countries",
    description="Known countries sorted by code"
)
@limiter.limit(RATE_LIMITS["countries"])
async def list_countries(
    request: Request,
    validator: CountryValidator = Depends(get_country_validator)
) -> List[CountryResponse]:
    countries = await validator.list_all()
    return [CountryResponse(**asdict(country)) for country in countries]


@router.get(
    "/countries/search",
    response_model=List[CountryResponse],
    summary="Search countries",
    description="Case-insensitive substring match on code or name"
)
@limiter.limit(RATE_LIMITS["countries"])
async def search_countries(
    request: Request,
    q: str = Query(..., description="Text to search for"),
    validator: CountryValidator = Depends(get_country_validator)
) -> List[CountryResponse]:
    try:
        countries = await validator.search(q)
    except InvalidInputError as e:
        raise bad_request(e)

    return [CountryResponse(**asdict(country)) for country in countries]


@router.get(
    "/countries/{country}",
    response_model=CountryValidationResponse,
    summary="Validate a country code"
)
@limiter.limit(RATE_LIMITS["countries"])
async def validate_country(
    country: str,
    request: Request,
    validator: CountryValidator = Depends(get_country_validator)
) -> CountryValidationResponse:
    try:
        validation = await validator.validate(country)
    except InvalidInputError as e:
        raise bad_request(e)

    return CountryValidationResponse(**asdict(validation))
