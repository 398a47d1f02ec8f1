"""Base fetcher class."""

from abc import ABC, abstractmethod
from typing import Any, Optional

import aiohttp


class BaseFetcher(ABC):
    """
    Abstract base class for all fetchers.

    Provides a lazily created aiohttp session and async context manager
    support. Subclasses implement fetch().
    """

    def __init__(self, timeout: int = 30):
        self.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create a shared aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    @abstractmethod
    async def fetch(self, source: str, **kwargs) -> Any:
        """
        Fetch the resource identified by source.

        Args:
            source: Source URL
        """
        pass

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "BaseFetcher":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit - ensure resources are closed."""
        await self.close()
