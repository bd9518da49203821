"""Retrying HTTP fetch shared by every catalog provider."""
import asyncio
import logging
from typing import Any, Callable, Dict, Optional, TypeVar

import httpx

from bookmeta.config import Config

logger = logging.getLogger(__name__)

T = TypeVar("T")


class NetworkError(Exception):
    """Base class for fetch failures."""
    pass


class BadURLError(NetworkError):
    """The URL could not be parsed or uses an unsupported scheme."""

    def __init__(self, url: str):
        super().__init__(f"Bad URL: {url}")
        self.url = url


class TransportFailureError(NetworkError):
    """Connection, timeout or other transport-level failure."""

    def __init__(self, underlying: Exception):
        super().__init__(f"Transport failure: {underlying}")
        self.underlying = underlying


class NonSuccessStatusError(NetworkError):
    """The server answered with a non-2xx status."""

    def __init__(self, status_code: int):
        super().__init__(f"Non-success status: {status_code}")
        self.status_code = status_code


class ParsingFailedError(NetworkError):
    """The response body could not be parsed."""

    def __init__(self, underlying: Exception):
        super().__init__(f"Parsing failed: {underlying}")
        self.underlying = underlying


def backoff_delay(
    attempt: int,
    base_delay: float = Config.BACKOFF_BASE_DELAY,
    backoff_factor: float = Config.BACKOFF_FACTOR,
    max_delay: float = Config.BACKOFF_MAX_DELAY
) -> float:
    """
    Delay before the retry that follows a failed attempt.

    Args:
        attempt: Failed attempt number (0-indexed)
        base_delay: Delay after the first failure
        backoff_factor: Growth factor per attempt (>= 1)
        max_delay: Upper bound for any single delay

    Returns:
        Delay in seconds, non-decreasing in attempt and capped at max_delay
    """
    delay = base_delay * (max(1.0, backoff_factor) ** max(0, attempt))
    return max(0.0, min(max_delay, delay))


async def retry_fetch(
    client: httpx.AsyncClient,
    url: str,
    parse: Callable[[bytes], T],
    max_retries: int = Config.DEFAULT_MAX_RETRIES,
    params: Optional[Dict[str, Any]] = None,
    *,
    base_delay: float = Config.BACKOFF_BASE_DELAY,
    backoff_factor: float = Config.BACKOFF_FACTOR,
    max_delay: float = Config.BACKOFF_MAX_DELAY
) -> T:
    """
    GET a URL and parse the body, retrying failed attempts with backoff.

    Transport failures, non-2xx statuses and parse errors are all retried
    the same way. A malformed URL fails immediately.

    Args:
        client: HTTP client used for the request
        url: Request URL
        parse: Called with the raw body of each 2xx response
        max_retries: Additional attempts after the first one
        params: Optional query parameters
        base_delay: First backoff delay in seconds
        backoff_factor: Backoff growth factor
        max_delay: Backoff cap in seconds

    Returns:
        Whatever parse returns for the first parseable response

    Raises:
        NetworkError: The error from the last attempt once retries run out
    """
    attempts = max(0, max_retries) + 1
    last_error: NetworkError = TransportFailureError(RuntimeError("no attempt made"))

    for attempt in range(attempts):
        try:
            logger.info(f"Request attempt {attempt + 1}/{attempts}: {url}")
            response = await client.get(url, params=params)

        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            logger.error(f"Bad URL {url}: {e}")
            raise BadURLError(url) from e

        except httpx.RequestError as e:
            # Transport, decoding and redirect failures
            logger.warning(f"Request error on attempt {attempt + 1}: {e}")
            last_error = TransportFailureError(e)

        else:
            if response.is_success:
                try:
                    return parse(response.content)
                except Exception as e:
                    logger.warning(f"Failed to parse response on attempt {attempt + 1}: {e}")
                    last_error = ParsingFailedError(e)
            else:
                logger.warning(f"Status {response.status_code} on attempt {attempt + 1}: {url}")
                last_error = NonSuccessStatusError(response.status_code)

        if attempt < attempts - 1:
            await _backoff(attempt, base_delay, backoff_factor, max_delay)

    logger.error(f"All {attempts} attempts failed: {url}")
    raise last_error


async def _backoff(attempt: int, base_delay: float, backoff_factor: float, max_delay: float):
    """Sleep before the next attempt."""
    delay = backoff_delay(attempt, base_delay, backoff_factor, max_delay)
    logger.info(f"Backing off for {delay:.2f} seconds")
    await asyncio.sleep(delay)
