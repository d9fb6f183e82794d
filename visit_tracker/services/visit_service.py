"""
Visit Service

Records visits after checking the country against the reference data, so
unknown countries never create counter keys.
"""

from visit_tracker.core.exceptions import UnknownCountryError
from visit_tracker.core.validators import normalize_country_code
from visit_tracker.services.country_validator import CountryValidator
from visit_tracker.services.stats_cache import StatsCache


class VisitService:
    """Entry point for recording visits."""

    def __init__(self, stats_cache: StatsCache, validator: CountryValidator):
        self.stats_cache = stats_cache
        self.validator = validator

    async def record_visit(self, country_code: str) -> int:
        """
        Record one visit for a country.

        Returns:
            New visit count for the country

        Raises:
            InvalidInputError: If the code is malformed
            UnknownCountryError: If the code is not a known country
            StoreUnavailableError: If the counter store fails
        """
        code = normalize_country_code(country_code)

        validation = await self.validator.validate(code)
        if not validation.valid:
            raise UnknownCountryError(code)

        return await self.stats_cache.record_visit(code)
