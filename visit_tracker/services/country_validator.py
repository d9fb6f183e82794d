"""
Country Validator

Validates country codes against the country reference data, with a long
TTL cache in front of the lookup capability.

Design Decisions:
- cachetools.TTLCache keyed by lowercase code, 24h TTL by default
- Only remote answers are cached; static fallback answers are not, so the
  remote source is retried on the next miss
- Unknown codes reported by the remote source are cached too
- Listings are refreshed from the lookup at most once per TTL window and
  feed the per-code cache
- Listing refreshes are single-flight, and a failed refresh is remembered
  for a short retry window so an outage does not cost a remote timeout on
  every listing request
- Listing and search work over the static list merged with cached
  entries; remote names win over static names for the same code
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from cachetools import TTLCache

from visit_tracker.core.validators import (
    display_country_code,
    normalize_country_code,
    normalize_search_query,
)
from visit_tracker.services.country_lookup import (
    Country,
    CountryLookup,
    CountrySource,
    StaticCountryLookup,
)

logger = logging.getLogger(__name__)

LISTING_KEY = "all"


@dataclass(frozen=True)
class CountryValidation:
    """Result of validating a code. name is None for invalid codes."""
    code: str
    valid: bool
    name: Optional[str] = None


class CountryValidator:
    """
    Validate, list and search countries.

    Constructed once per process; the caches are process-local.
    """

    def __init__(
        self,
        lookup: CountryLookup,
        static: Optional[StaticCountryLookup] = None,
        ttl: float = 86400.0,
        max_size: int = 1024,
        listing_retry: float = 60.0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Initialize the validator.

        Args:
            lookup: Lookup capability, usually a FallbackCountryLookup
            static: Static list merged into listings
            ttl: Seconds a remote answer stays cached
            max_size: Maximum number of cached codes
            listing_retry: Seconds to wait before asking the remote source for
                the full listing again after it failed
            clock: Monotonic time source for the caches
        """
        self.lookup = lookup
        self.static = static or StaticCountryLookup()
        self._cache: TTLCache = TTLCache(maxsize=max_size, ttl=ttl, timer=clock)
        self._listing_cache: TTLCache = TTLCache(maxsize=1, ttl=ttl, timer=clock)
        self._listing_failures: TTLCache = TTLCache(maxsize=1, ttl=listing_retry, timer=clock)
        self._listing_lock = asyncio.Lock()

    def _cache_country(self, country: Country) -> None:
        self._cache[country.code.lower()] = CountryValidation(
            code=country.code, valid=True, name=country.name
        )

    async def validate(self, country_code: str) -> CountryValidation:
        """
        Validate a country code.

        Returns:
            CountryValidation with a definite valid/invalid answer

        Raises:
            InvalidInputError: If the code is malformed
        """
        key = normalize_country_code(country_code)

        cached = self._cache.get(key)
        if cached is not None:
            return cached

        code = display_country_code(key)
        result = await self.lookup.lookup(code)

        if result.found:
            validation = CountryValidation(code=code, valid=True, name=result.country.name)
        else:
            validation = CountryValidation(code=code, valid=False)

        if result.source == CountrySource.remote:
            self._cache[key] = validation
        else:
            logger.debug(f"Answered {code} from static list; not caching")

        return validation

    async def _refresh_listing(self) -> None:
        if LISTING_KEY in self._listing_cache or LISTING_KEY in self._listing_failures:
            return

        # One remote listing at a time; waiters see its outcome on re-check
        async with self._listing_lock:
            if LISTING_KEY in self._listing_cache or LISTING_KEY in self._listing_failures:
                return

            result = await self.lookup.list_countries()
            if result.source != CountrySource.remote:
                self._listing_failures[LISTING_KEY] = True
                logger.info(
                    f"Remote listing unavailable; retrying in {self._listing_failures.ttl:.0f}s"
                )
                return

            for country in result.countries:
                self._cache_country(country)
            self._listing_cache[LISTING_KEY] = len(result.countries)
            logger.info(f"Cached {len(result.countries)} countries from remote listing")

    async def list_all(self) -> List[Country]:
        """
        List known countries, sorted by code.

        Merges the static list with cached remote entries.
        """
        await self._refresh_listing()

        merged: Dict[str, Country] = {
            country.code: country for country in self.static.countries
        }
        for validation in list(self._cache.values()):
            if validation.valid:
                merged[validation.code] = Country(code=validation.code, name=validation.name)

        return [merged[code] for code in sorted(merged)]

    async def search(self, query: str) -> List[Country]:
        """
        Case-insensitive substring search on code or name.

        Raises:
            InvalidInputError: If the query is blank or too long
        """
        needle = normalize_search_query(query)
        return [
            country for country in await self.list_all()
            if needle in country.code.lower() or needle in country.name.lower()
        ]
