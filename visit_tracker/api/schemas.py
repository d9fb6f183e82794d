"""
API Request and Response Schemas

This module defines all Pydantic models for API responses.
Separated from endpoints to keep concerns separated and enable reuse.
"""

from typing import Optional

from pydantic import BaseModel, Field


class VisitResponse(BaseModel):
    """Response model for the visit recording endpoint."""
    country: str = Field(..., description="Normalized (lowercase) country code")
    visits: int = Field(..., ge=1, description="Visit count after this visit")


class ClearAllResponse(BaseModel):
    """Response model for clearing every counter."""
    removed: int = Field(..., ge=0, description="Number of counters deleted")


class ClearOneResponse(BaseModel):
    """Response model for clearing one country's counter."""
    country: str
    removed: bool


class CountryResponse(BaseModel):
    """A country entry in listings and search results."""
    code: str = Field(..., description="Uppercase ISO 3166-1 alpha-2 code")
    name: str


class CountryValidationResponse(BaseModel):
    """Response model for country validation."""
    code: str
    valid: bool
    name: Optional[str] = None


class HealthResponse(BaseModel):
    """Response model for the health endpoint."""
    status: str
    redis: str
