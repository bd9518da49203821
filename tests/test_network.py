"""Tests for the retrying fetch utility."""
import asyncio
import json

import httpx
import pytest

from bookmeta.network import (
    BadURLError,
    NonSuccessStatusError,
    ParsingFailedError,
    TransportFailureError,
    backoff_delay,
    retry_fetch,
)

URL = "https://example.com/books"


def run_fetch(handler, parse=json.loads, max_retries=3, **kwargs):
    """Run retry_fetch against a mock transport with no backoff delay."""
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await retry_fetch(client, URL, parse, max_retries, base_delay=0, **kwargs)

    return asyncio.run(go())


def test_success_first_attempt():
    """Test a 2xx response is parsed and returned."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"ok": True})

    assert run_fetch(handler) == {"ok": True}
    assert len(calls) == 1


def test_retries_on_server_error_then_succeeds():
    """Test non-success statuses are retried."""
    statuses = iter([503, 429, 200])

    def handler(request):
        status = next(statuses)
        return httpx.Response(status, json={"status": status})

    assert run_fetch(handler) == {"status": 200}


def test_retries_on_transport_failure():
    """Test connection errors are retried like any other failure."""
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 2:
            raise httpx.ConnectError("connection refused")
        return httpx.Response(200, json=[1, 2])

    assert run_fetch(handler) == [1, 2]
    assert len(calls) == 2


def test_non_transport_request_errors_are_retried():
    """Test decoding and redirect errors are retried and wrapped like transport failures."""
    errors = [httpx.DecodingError("bad gzip"), httpx.TooManyRedirects("loop")]

    def handler(request):
        if errors:
            raise errors.pop(0)
        return httpx.Response(200, json={"ok": True})

    assert run_fetch(handler) == {"ok": True}

    def always_failing(request):
        raise httpx.DecodingError("bad gzip")

    with pytest.raises(TransportFailureError) as exc_info:
        run_fetch(always_failing, max_retries=1)

    assert isinstance(exc_info.value.underlying, httpx.DecodingError)


def test_parse_failure_is_retried():
    """Test a parse error counts as a failed attempt, not an immediate failure."""
    bodies = iter([b"<html>oops</html>", b'{"title": "Dune"}'])

    def handler(request):
        return httpx.Response(200, content=next(bodies))

    assert run_fetch(handler) == {"title": "Dune"}


def test_exhausted_status_raises_last_error():
    """Test 1 + max_retries attempts are made before giving up."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    with pytest.raises(NonSuccessStatusError) as exc_info:
        run_fetch(handler, max_retries=2)

    assert exc_info.value.status_code == 500
    assert len(calls) == 3


def test_exhausted_transport_failure():
    """Test transport failures surface as TransportFailureError."""
    def handler(request):
        raise httpx.ReadTimeout("timed out")

    with pytest.raises(TransportFailureError) as exc_info:
        run_fetch(handler, max_retries=1)

    assert isinstance(exc_info.value.underlying, httpx.ReadTimeout)


def test_exhausted_parse_failure():
    """Test persistent parse errors surface as ParsingFailedError."""
    def handler(request):
        return httpx.Response(200, content=b"not json")

    with pytest.raises(ParsingFailedError) as exc_info:
        run_fetch(handler, max_retries=1)

    assert isinstance(exc_info.value.underlying, ValueError)


def test_zero_retries_makes_one_attempt():
    """Test max_retries=0 still makes a single request."""
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(404)

    with pytest.raises(NonSuccessStatusError):
        run_fetch(handler, max_retries=0)

    assert len(calls) == 1


def test_bad_url_is_not_retried():
    """Test an unsupported URL fails immediately."""
    calls = []

    def handler(request):
        calls.append(request)
        raise httpx.UnsupportedProtocol("Request URL has an unsupported protocol")

    with pytest.raises(BadURLError):
        run_fetch(handler, max_retries=3)

    assert len(calls) == 1


def test_query_params_are_sent():
    """Test params are attached to the request."""
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(200, json={})

    run_fetch(handler, params={"title": "Dune", "limit": 5})

    assert seen == {"title": "Dune", "limit": "5"}


def test_backoff_sleeps_between_attempts(monkeypatch):
    """Test the delay grows between attempts and no sleep follows the last one."""
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr("bookmeta.network.asyncio.sleep", fake_sleep)

    def handler(request):
        return httpx.Response(502)

    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            await retry_fetch(
                client, URL, json.loads, 3,
                base_delay=1.0, backoff_factor=2.0, max_delay=3.0
            )

    with pytest.raises(NonSuccessStatusError):
        asyncio.run(go())

    assert delays == [1.0, 2.0, 3.0]


def test_backoff_delay_monotonic_and_bounded():
    """Test the backoff curve never decreases and never exceeds the cap."""
    delays = [backoff_delay(attempt, 0.5, 1.5, 8.0) for attempt in range(20)]

    assert delays[0] == 0.5
    assert all(a <= b for a, b in zip(delays, delays[1:]))
    assert max(delays) == 8.0


def test_backoff_delay_ignores_shrinking_factor():
    """Test a factor below 1 cannot make the delay decrease."""
    delays = [backoff_delay(attempt, 1.0, 0.5, 10.0) for attempt in range(5)]

    assert delays == [1.0] * 5
