"""Aggregate book metadata from every catalog provider."""
import asyncio
import logging
from typing import List, Optional, Sequence

import httpx

from bookmeta.config import Config
from bookmeta.google_books import GoogleBooksProvider
from bookmeta.merge import filter_by_relevance, merge_and_deduplicate
from bookmeta.models import BookRecord
from bookmeta.open_library import OpenLibraryProvider
from bookmeta.provider import BookProvider, ProviderError

logger = logging.getLogger(__name__)


class BookSearchService:
    """Fans out to all providers, then merges, dedups and ranks the results."""

    def __init__(
        self,
        providers: Optional[Sequence[BookProvider]] = None,
        api_key: Optional[str] = None,
        timeout: int = Config.DEFAULT_TIMEOUT,
        max_retries: int = Config.DEFAULT_MAX_RETRIES,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the service.

        Args:
            providers: Providers to query; defaults to Google Books and Open Library
            api_key: Google Books API key; falls back to GOOGLE_BOOKS_API_KEY
            timeout: Request timeout for the owned HTTP client
            max_retries: Retry attempts per request
            client: HTTP client to use instead of creating one
        """
        self.max_retries = max_retries
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

        if providers is None:
            providers = [
                GoogleBooksProvider(self.client, api_key=api_key),
                OpenLibraryProvider(self.client),
            ]
        self.providers = list(providers)

    async def fetch_book_data(
        self,
        title: str,
        author: str,
        isbn: Optional[str] = None,
        limit: int = Config.DEFAULT_LIMIT
    ) -> List[BookRecord]:
        """
        Search every provider and return the best matching records.

        Provider failures are logged and treated as empty results.

        Args:
            title: Title search term ('' for none)
            author: Author search term ('' for none)
            isbn: Optional ISBN
            limit: Maximum number of records to return

        Returns:
            At most `limit` records, best match first when title/author given
        """
        title = (title or "").strip()
        author = (author or "").strip()
        isbn = (isbn or "").strip() or None

        if not title and not author and not isbn:
            logger.info("No search criteria given")
            return []
        if limit <= 0:
            return []

        tasks = [self._fetch_from(provider, title, author, isbn, limit) for provider in self.providers]
        # gather returns results in provider order regardless of completion order
        results = await asyncio.gather(*tasks)

        candidates = [book for books in results for book in books]
        unique_books = merge_and_deduplicate(candidates)
        logger.info(f"{len(candidates)} candidates, {len(unique_books)} after dedup")

        if title or author:
            return filter_by_relevance(unique_books, title, author, limit)

        return unique_books[:limit]

    async def _fetch_from(
        self,
        provider: BookProvider,
        title: str,
        author: str,
        isbn: Optional[str],
        limit: int
    ) -> List[BookRecord]:
        name = getattr(provider, "name", type(provider).__name__)
        try:
            return await provider.fetch_books(title, author, isbn, limit, self.max_retries)
        except ProviderError as e:
            logger.warning(f"Provider {name} failed: {e}")
            return []
        except Exception as e:
            logger.error(f"Unexpected error from provider {name}: {e}", exc_info=True)
            return []

    async def close(self):
        """Close the HTTP client if this service created it."""
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()


async def fetch_book_data(
    title: str,
    author: str,
    isbn: Optional[str] = None,
    limit: int = Config.DEFAULT_LIMIT
) -> List[BookRecord]:
    """One-shot search using settings from the environment."""
    config = Config()
    async with BookSearchService(
        api_key=config.GOOGLE_BOOKS_API_KEY,
        timeout=config.DEFAULT_TIMEOUT,
        max_retries=config.DEFAULT_MAX_RETRIES
    ) as service:
        return await service.fetch_book_data(title, author, isbn, limit)
