"""Common contract for book catalog providers."""
from typing import List, Optional, Protocol

from bookmeta.models import BookRecord
from bookmeta.network import NetworkError


class ProviderError(Exception):
    """Base class for catalog provider failures."""
    pass


class EmptyQueryError(ProviderError):
    """No usable search term could be built."""
    pass


class InvalidURLError(ProviderError):
    """No request URL could be built from the search terms."""
    pass


class UnauthorizedError(ProviderError):
    """Missing or rejected API credential."""
    pass


class ApiError(ProviderError):
    """The underlying fetch failed after all retries."""

    def __init__(self, network_error: NetworkError):
        super().__init__(f"API request failed: {network_error}")
        self.network_error = network_error


class ParsingError(ProviderError):
    """The provider response could not be mapped into book records."""

    def __init__(self, underlying: Exception):
        super().__init__(f"Failed to parse provider response: {underlying}")
        self.underlying = underlying


class BookProvider(Protocol):
    """A catalog that can be searched by title, author and ISBN."""

    name: str

    async def fetch_books(
        self,
        title: str,
        author: str,
        isbn: Optional[str] = None,
        limit: int = 10,
        retries: int = 3
    ) -> List[BookRecord]: ...
