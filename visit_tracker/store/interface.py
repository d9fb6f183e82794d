"""
Counter Store Abstraction Interface

This module defines the contract for the key-value backend that holds
per-country visit counters. The rest of the codebase only talks to this
interface, so a different backend can be swapped in by implementing a new
store class.

All implementations must:
- Increment atomically at the backend (no read-then-write from the caller)
- Enumerate keys incrementally instead of with one blocking listing
- Raise StoreUnavailableError on any backend failure, without retrying
"""

from abc import ABC, abstractmethod
from typing import Dict


class CounterStore(ABC):
    """
    Abstract base class for visit counter stores.

    Codes passed in are already normalized (lowercase ISO alpha-2).
    """

    @abstractmethod
    async def increment(self, country_code: str) -> int:
        """
        Atomically increment the counter for a country by one.

        Creates the counter at 1 if it does not exist.

        Returns:
            The new count

        Raises:
            StoreUnavailableError: If the backend fails
        """
        pass

    @abstractmethod
    async def get_count(self, country_code: str) -> int:
        """
        Read a single counter.

        Returns:
            The stored count, 0 if the counter does not exist
        """
        pass

    @abstractmethod
    async def scan_all(self) -> Dict[str, int]:
        """
        Enumerate every counter and its value.

        Returns:
            Mapping of country code to count

        Raises:
            StoreUnavailableError: If the backend fails
        """
        pass

    @abstractmethod
    async def clear_all(self) -> int:
        """
        Delete every counter in the namespace.

        Returns:
            Number of counters removed
        """
        pass

    @abstractmethod
    async def clear_one(self, country_code: str) -> bool:
        """
        Delete the counter for one country.

        Returns:
            True if a counter was removed
        """
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """
        Check backend connectivity.

        Returns:
            True if the backend answered; never raises
        """
        pass
