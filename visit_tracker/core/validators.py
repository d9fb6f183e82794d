"""
Input Validators and Sanitizers

This module provides normalization functions for user inputs.
Country codes are normalized once here so that visit counters and the
country cache always agree on casing.

Conventions:
- Storage keys and cache keys use lowercase codes ("fr")
- Remote lookups and display use uppercase codes ("FR")
"""

import re

from visit_tracker.core.exceptions import InvalidInputError

COUNTRY_CODE_PATTERN = re.compile(r'^[a-z]{2}$')
MAX_QUERY_LENGTH = 100


def normalize_country_code(country_code: str) -> str:
    """
    Normalize a country code to its lowercase ISO 3166-1 alpha-2 form.

    Args:
        country_code: Raw code from the request path or caller

    Returns:
        Lowercase two-letter code

    Raises:
        InvalidInputError: If the code is not exactly two ASCII letters
    """
    if not isinstance(country_code, str):
        raise InvalidInputError(str(country_code))

    code = country_code.strip().lower()

    if not COUNTRY_CODE_PATTERN.match(code):
        raise InvalidInputError(
            country_code,
            reason="Country code must be two ASCII letters (ISO 3166-1 alpha-2)"
        )

    return code


def display_country_code(country_code: str) -> str:
    """Uppercase form of an already-normalized code."""
    return country_code.upper()


def normalize_search_query(query: str) -> str:
    """
    Normalize a free-text country search query.

    Raises:
        InvalidInputError: If the query is blank or too long
    """
    if not isinstance(query, str):
        raise InvalidInputError(str(query), reason="Search query must be text")

    normalized = query.strip().lower()

    if not normalized:
        raise InvalidInputError(query, reason="Search query must not be blank")

    if len(normalized) > MAX_QUERY_LENGTH:
        raise InvalidInputError(
            query[:20] + "...",
            reason=f"Search query longer than {MAX_QUERY_LENGTH} characters"
        )

    return normalized
