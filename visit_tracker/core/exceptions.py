"""
Custom Exceptions

This module defines the exceptions raised by the visit tracker core.

Propagation:
- StoreUnavailableError surfaces to the caller (there is no substitute store)
- ValidationServiceUnavailableError is recovered inside the country validator
- InvalidInputError is raised before any backend call is made
"""

from typing import Optional


class VisitTrackerException(Exception):
    """Base exception for the visit tracker service."""
    pass


class StoreUnavailableError(VisitTrackerException):
    """Raised when the key-value backend is unreachable or erroring."""

    def __init__(self, operation: str, original_error: Optional[Exception] = None):
        self.operation = operation
        self.original_error = original_error
        message = f"Counter store unavailable during '{operation}'"
        if original_error is not None:
            message = f"{message}: {original_error}"
        super().__init__(message)


class ValidationServiceUnavailableError(VisitTrackerException):
    """Raised when the remote country reference service cannot answer."""

    def __init__(self, reason: str, original_error: Optional[Exception] = None):
        self.reason = reason
        self.original_error = original_error
        super().__init__(f"Country reference service unavailable: {reason}")


class InvalidInputError(VisitTrackerException):
    """Raised when a country code or search query is malformed."""

    def __init__(self, value: str, reason: str = "Invalid country code"):
        self.value = value
        self.reason = reason
        super().__init__(f"{reason}: {value!r}")


class UnknownCountryError(InvalidInputError):
    """Raised when a well-formed code does not name a known country."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(code, reason="Unknown country code")


class ServiceUnavailableError(VisitTrackerException):
    """Raised when a required service is unavailable."""

    def __init__(self, service_name: str):
        self.service_name = service_name
        super().__init__(f"Service '{service_name}' is unavailable")
