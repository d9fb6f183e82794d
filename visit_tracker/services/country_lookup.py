"""
Country Lookup Capability

This module defines how country reference data is fetched. The validator
only sees the CountryLookup interface; the remote source, the static list
and the fallback between them are separate implementations composed at
startup.

Implementations:
- RemoteCountryLookup: REST Countries style HTTP API via httpx
- StaticCountryLookup: embedded ISO 3166-1 list
- FallbackCountryLookup: asks the primary, answers from the fallback when
  the primary raises ValidationServiceUnavailableError
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

import httpx

from visit_tracker.core.exceptions import ValidationServiceUnavailableError
from visit_tracker.services.country_data import STATIC_COUNTRIES

logger = logging.getLogger(__name__)


class CountrySource(str, Enum):
    """Where a country answer came from."""
    remote = "remote"
    static = "static"


@dataclass(frozen=True)
class Country:
    """A country record; code is uppercase ISO alpha-2."""
    code: str
    name: str


@dataclass(frozen=True)
class LookupResult:
    """Answer for a single code. country is None when the code is unknown."""
    code: str
    country: Optional[Country]
    source: CountrySource

    @property
    def found(self) -> bool:
        return self.country is not None


@dataclass(frozen=True)
class ListingResult:
    """Answer for a full listing."""
    countries: List[Country]
    source: CountrySource


class CountryLookup(ABC):
    """
    Abstract country reference source.

    Codes passed in are uppercase ISO alpha-2.
    """

    @abstractmethod
    async def lookup(self, code: str) -> LookupResult:
        """
        Look up one country by code.

        Raises:
            ValidationServiceUnavailableError: If the source cannot answer
        """
        pass

    @abstractmethod
    async def list_countries(self) -> ListingResult:
        """
        List every country the source knows.

        Raises:
            ValidationServiceUnavailableError: If the source cannot answer
        """
        pass


class StaticCountryLookup(CountryLookup):
    """Lookup over the embedded country list. Never fails."""

    def __init__(self, entries=STATIC_COUNTRIES):
        self._countries: Dict[str, Country] = {
            code: Country(code=code, name=name) for code, name in entries
        }

    @property
    def countries(self) -> List[Country]:
        return list(self._countries.values())

    async def lookup(self, code: str) -> LookupResult:
        return LookupResult(
            code=code,
            country=self._countries.get(code),
            source=CountrySource.static
        )

    async def list_countries(self) -> ListingResult:
        return ListingResult(countries=self.countries, source=CountrySource.static)


class RemoteCountryLookup(CountryLookup):
    """
    Lookup against a REST Countries compatible API.

    Endpoints used:
    - GET /alpha/{code}?fields=cca2,name
    - GET /all?fields=cca2,name

    A 404 for a code is a definite "unknown country". Every other failure
    (timeout, transport error, non-2xx, unexpected payload) raises
    ValidationServiceUnavailableError.
    """

    FIELDS = "cca2,name"

    def __init__(self, client: httpx.AsyncClient, timeout: float = 3.0):
        """
        Initialize the remote lookup.

        Args:
            client: httpx client whose base_url points at the API root
            timeout: Per-request timeout in seconds
        """
        self.client = client
        self.timeout = timeout

    async def _get(self, path: str) -> httpx.Response:
        try:
            return await self.client.get(
                path,
                params={"fields": self.FIELDS},
                timeout=self.timeout
            )
        except httpx.TimeoutException as e:
            raise ValidationServiceUnavailableError(f"timeout on {path}", e) from e
        except httpx.HTTPError as e:
            raise ValidationServiceUnavailableError(f"request to {path} failed", e) from e

    @staticmethod
    def _parse_country(payload) -> Country:
        try:
            code = str(payload["cca2"]).upper()
            name = payload["name"]
            if isinstance(name, dict):
                name = name["common"]
            return Country(code=code, name=str(name))
        except (KeyError, TypeError) as e:
            raise ValidationServiceUnavailableError("unexpected country payload", e) from e

    async def lookup(self, code: str) -> LookupResult:
        path = f"/alpha/{code}"
        response = await self._get(path)

        if response.status_code in (400, 404):
            return LookupResult(code=code, country=None, source=CountrySource.remote)

        if not response.is_success:
            raise ValidationServiceUnavailableError(
                f"HTTP {response.status_code} from {path}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ValidationServiceUnavailableError(f"invalid JSON from {path}", e) from e

        # Some API versions wrap single results in a list
        if isinstance(payload, list):
            if not payload:
                return LookupResult(code=code, country=None, source=CountrySource.remote)
            payload = payload[0]

        country = self._parse_country(payload)
        if country.code != code:
            raise ValidationServiceUnavailableError(
                f"asked for {code}, got {country.code}"
            )
        return LookupResult(code=code, country=country, source=CountrySource.remote)

    async def list_countries(self) -> ListingResult:
        path = "/all"
        response = await self._get(path)

        if not response.is_success:
            raise ValidationServiceUnavailableError(
                f"HTTP {response.status_code} from {path}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise ValidationServiceUnavailableError(f"invalid JSON from {path}", e) from e

        if not isinstance(payload, list):
            raise ValidationServiceUnavailableError(f"expected a list from {path}")

        countries = [self._parse_country(item) for item in payload]
        return ListingResult(countries=countries, source=CountrySource.remote)


class FallbackCountryLookup(CountryLookup):
    """
    Compose a primary lookup with a fallback.

    Primary failures are logged and recorded in `degraded` and
    `last_failure_at`; callers always get an answer.
    """

    def __init__(self, primary: CountryLookup, fallback: CountryLookup):
        self.primary = primary
        self.fallback = fallback
        self.degraded = False
        self.last_failure_at: Optional[float] = None

    def _record_failure(self, error: ValidationServiceUnavailableError) -> None:
        if not self.degraded:
            logger.warning(f"Falling back to static country list: {error}")
        self.degraded = True
        self.last_failure_at = time.time()

    async def lookup(self, code: str) -> LookupResult:
        try:
            result = await self.primary.lookup(code)
        except ValidationServiceUnavailableError as e:
            self._record_failure(e)
            return await self.fallback.lookup(code)
        self.degraded = False
        return result

    async def list_countries(self) -> ListingResult:
        try:
            result = await self.primary.list_countries()
        except ValidationServiceUnavailableError as e:
            self._record_failure(e)
            return await self.fallback.list_countries()
        self.degraded = False
        return result
