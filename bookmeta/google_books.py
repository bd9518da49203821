"""Google Books catalog provider."""
import logging
from typing import List, Optional, Dict
from urllib.parse import quote, urlencode

import httpx

from bookmeta.config import Config
from bookmeta.models import BookRecord
from bookmeta.network import NetworkError, NonSuccessStatusError, retry_fetch
from bookmeta.parse import load_json_object, parse_volumes_response
from bookmeta.provider import (
    ApiError,
    EmptyQueryError,
    ParsingError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)


def build_query(title: str, author: str, isbn: Optional[str] = None) -> str:
    """
    Build the Google Books q= expression.

    Args:
        title: Title search term
        author: Author search term
        isbn: Optional ISBN

    Returns:
        intitle:/inauthor:/isbn: clauses joined with '+', or '' if none apply
    """
    clauses = []

    if title and title.strip():
        clauses.append(f"intitle:{title.strip()}")
    if author and author.strip():
        clauses.append(f"inauthor:{author.strip()}")
    if isbn and isbn.strip():
        clauses.append(f"isbn:{isbn.strip()}")

    return "+".join(clauses)


class GoogleBooksProvider:
    """Keyed catalog: requires a Google Books API key."""

    name = "google_books"
    BASE_URL = "https://www.googleapis.com/books/v1/volumes"
    MAX_RESULTS = 40  # API limit

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: Optional[str] = None,
        base_delay: float = Config.BACKOFF_BASE_DELAY
    ):
        """
        Initialize the provider.

        Args:
            client: Shared async HTTP client
            api_key: API key; falls back to GOOGLE_BOOKS_API_KEY
            base_delay: First retry backoff delay in seconds
        """
        self.client = client
        self.api_key = api_key if api_key is not None else Config.GOOGLE_BOOKS_API_KEY
        self.base_delay = base_delay

    def build_url(self, query: str, limit: int) -> str:
        """Full volumes URL; '+' and ':' in the query are sent literally."""
        params: Dict[str, str] = {
            "q": query,
            "maxResults": str(max(1, min(limit, self.MAX_RESULTS))),
            "projection": "full",
            "key": self.api_key or "",
        }
        params = {k: v for k, v in params.items() if v}
        return f"{self.BASE_URL}?{urlencode(params, safe=':+', quote_via=quote)}"

    async def fetch_books(
        self,
        title: str,
        author: str,
        isbn: Optional[str] = None,
        limit: int = 10,
        retries: int = 3
    ) -> List[BookRecord]:
        """
        Search Google Books.

        Args:
            title: Title search term
            author: Author search term
            isbn: Optional ISBN
            limit: Max results requested from the API
            retries: Retry attempts after the first request

        Returns:
            List of BookRecord objects

        Raises:
            UnauthorizedError: No API key, or the key was rejected
            EmptyQueryError: No search term given
            ApiError: Request failed after all retries
            ParsingError: Response could not be mapped
        """
        if not self.api_key:
            raise UnauthorizedError("Google Books API key is not configured")

        query = build_query(title, author, isbn)
        if not query:
            raise EmptyQueryError("No title, author or ISBN to search for")

        url = self.build_url(query, limit)
        logger.info(f"Google Books search: {query}")

        try:
            response_json = await retry_fetch(
                self.client, url, load_json_object, retries, base_delay=self.base_delay
            )
        except NonSuccessStatusError as e:
            if e.status_code in (401, 403):
                raise UnauthorizedError(f"Google Books rejected the API key ({e.status_code})") from e
            raise ApiError(e) from e
        except NetworkError as e:
            raise ApiError(e) from e

        try:
            books = parse_volumes_response(response_json, isbn)
        except (AttributeError, TypeError) as e:
            raise ParsingError(e) from e

        logger.info(f"Google Books returned {len(books)} books")
        return books
