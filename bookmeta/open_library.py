"""Open Library catalog provider."""
import asyncio
import logging
from typing import Any, Dict, List, Optional

import httpx

from bookmeta.config import Config
from bookmeta.models import BookRecord
from bookmeta.network import NetworkError, retry_fetch
from bookmeta.parse import (
    load_json_object,
    parse_isbn_lookup,
    parse_search_doc,
    parse_work_description,
)
from bookmeta.provider import ApiError, InvalidURLError, ParsingError

logger = logging.getLogger(__name__)


class OpenLibraryProvider:
    """Open catalog: no credential required."""

    name = "open_library"
    SEARCH_URL = "https://openlibrary.org/search.json"
    BOOKS_URL = "https://openlibrary.org/api/books"
    DETAILS_URL = "https://openlibrary.org"
    MAX_DESCRIBED_DOCS = 10

    def __init__(self, client: httpx.AsyncClient, base_delay: float = Config.BACKOFF_BASE_DELAY):
        self.client = client
        self.base_delay = base_delay

    async def fetch_books(
        self,
        title: str,
        author: str,
        isbn: Optional[str] = None,
        limit: int = 10,
        retries: int = 3
    ) -> List[BookRecord]:
        """
        Search Open Library.

        An ISBN goes straight to the bibkeys endpoint. Otherwise the search
        endpoint is queried and each of the first min(10, limit) results gets
        its description from the work record.

        Raises:
            InvalidURLError: Neither ISBN nor title/author given
            ApiError: Request failed after all retries
            ParsingError: Response could not be mapped
        """
        isbn = isbn.strip() if isbn else ""
        title = title.strip() if title else ""
        author = author.strip() if author else ""

        if isbn:
            return await self._fetch_by_isbn(isbn, retries)
        if title or author:
            return await self._search(title, author, limit, retries)

        raise InvalidURLError("Open Library needs an ISBN, a title or an author")

    async def fetch_description(self, work_key: str, retries: int = 3) -> str:
        """
        Fetch the description of a work, e.g. '/works/OL45804W'.

        Returns:
            Description text, '' if the work has none

        Raises:
            ApiError: Request failed after all retries
        """
        url = f"{self.DETAILS_URL}{work_key}.json"
        try:
            work_json = await retry_fetch(
                self.client, url, load_json_object, retries, base_delay=self.base_delay
            )
        except NetworkError as e:
            raise ApiError(e) from e

        return parse_work_description(work_json)

    async def _fetch_by_isbn(self, isbn: str, retries: int) -> List[BookRecord]:
        params = {
            "bibkeys": f"ISBN:{isbn}",
            "format": "json",
            "jscmd": "data",
        }
        logger.info(f"Open Library ISBN lookup: {isbn}")

        response_json = await self._get_json(self.BOOKS_URL, params, retries)

        try:
            return parse_isbn_lookup(response_json, isbn)
        except (AttributeError, TypeError, ValueError) as e:
            raise ParsingError(e) from e

    async def _search(self, title: str, author: str, limit: int, retries: int) -> List[BookRecord]:
        params: Dict[str, Any] = {}
        if title:
            params["title"] = title
        if author:
            params["author"] = author
        params["limit"] = max(1, limit)
        params["page"] = 1
        logger.info(f"Open Library search: title={title!r} author={author!r}")

        response_json = await self._get_json(self.SEARCH_URL, params, retries)

        docs = response_json.get("docs") or []
        if not isinstance(docs, list):
            raise ParsingError(TypeError(f"'docs' is {type(docs).__name__}, not a list"))

        docs = [doc for doc in docs[:min(self.MAX_DESCRIBED_DOCS, limit)] if isinstance(doc, dict)]

        # Fan out description lookups; gather keeps docs order
        tasks = [self._build_record(doc, retries) for doc in docs]
        records = await asyncio.gather(*tasks)

        books = [book for book in records if book is not None]
        logger.info(f"Open Library returned {len(books)} books")
        return books

    async def _build_record(self, doc: Dict[str, Any], retries: int) -> Optional[BookRecord]:
        description = ""
        work_key = doc.get("key")
        if isinstance(work_key, str) and work_key.startswith("/"):
            try:
                description = await self.fetch_description(work_key, retries)
            except ApiError as e:
                logger.warning(f"No description for {work_key}: {e}")

        try:
            return parse_search_doc(doc, description)
        except (AttributeError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed search doc {work_key}: {e}")
            return None

    async def _get_json(self, url: str, params: Dict[str, Any], retries: int) -> Dict[str, Any]:
        try:
            return await retry_fetch(
                self.client, url, load_json_object, retries, params, base_delay=self.base_delay
            )
        except NetworkError as e:
            raise ApiError(e) from e
