"""Tests for the retrying HTTP fetcher."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from catalog_sync.ingest.http_client import (
    FetchExhausted,
    HttpFetcher,
    PayloadError,
    RetryPolicy,
)


def _fetcher(handler, **policy):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpFetcher(policy=RetryPolicy(**policy), client=client)


def test_backoff_doubles_and_is_capped():
    """Test exponential backoff with the max delay cap."""
    policy = RetryPolicy(base_delay=1.0, max_delay=5.0)
    assert [policy.backoff(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]


@pytest.mark.asyncio
async def test_retries_then_succeeds():
    """Test that a transient 503 is retried and the second response returned."""
    calls = []

    def handler(request):
        calls.append(request.url)
        if len(calls) == 1:
            return httpx.Response(503)
        return httpx.Response(200, json={"ok": True})

    fetcher = _fetcher(handler, max_retries=3)
    with patch("catalog_sync.ingest.http_client.asyncio.sleep", new=AsyncMock()) as sleep:
        payload = await fetcher.get_json("https://retailer.test/a")

    assert payload == {"ok": True}
    assert len(calls) == 2
    sleep.assert_awaited_once_with(1.0)
    await fetcher.close()


@pytest.mark.asyncio
async def test_exhausted_after_max_attempts():
    """Test that FetchExhausted carries the attempt count and last status."""
    calls = []

    def handler(request):
        calls.append(request.url)
        return httpx.Response(500)

    fetcher = _fetcher(handler, max_retries=3)
    with patch("catalog_sync.ingest.http_client.asyncio.sleep", new=AsyncMock()) as sleep:
        with pytest.raises(FetchExhausted) as exc_info:
            await fetcher.get("https://retailer.test/down")

    assert len(calls) == 3
    assert exc_info.value.attempts == 3
    assert exc_info.value.status_code == 500
    # No sleep after the final attempt
    assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]


@pytest.mark.asyncio
async def test_transport_errors_are_retried():
    """Test that timeouts count as failed attempts and surface as the last error."""

    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    fetcher = _fetcher(handler, max_retries=2)
    with patch("catalog_sync.ingest.http_client.asyncio.sleep", new=AsyncMock()):
        with pytest.raises(FetchExhausted) as exc_info:
            await fetcher.get("https://retailer.test/slow")

    assert exc_info.value.status_code is None
    assert isinstance(exc_info.value.last_error, httpx.ConnectTimeout)


@pytest.mark.asyncio
async def test_invalid_json_raises_payload_error():
    """Test that a 200 with an HTML body is not treated as data."""
    fetcher = _fetcher(lambda request: httpx.Response(200, text="<html>blocked</html>"))

    with pytest.raises(PayloadError):
        await fetcher.get_json("https://retailer.test/html")


@pytest.mark.asyncio
async def test_headers_are_merged():
    """Test that fetcher headers override the defaults."""
    seen = {}

    def handler(request):
        seen.update(request.headers)
        return httpx.Response(200, json={})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    fetcher = HttpFetcher(policy=RetryPolicy(), headers={"Referer": "https://www.zara.com/"}, client=client)
    await fetcher.get("https://retailer.test/h")

    assert seen["referer"] == "https://www.zara.com/"
    assert "Mozilla" in seen["user-agent"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [httpx.ProxyError, httpx.UnsupportedProtocol, httpx.DecodingError],
)
async def test_non_transient_transport_errors_fail_fast(error):
    """Test that errors a retry cannot fix surface as FetchExhausted after one attempt."""
    calls = []

    def handler(request):
        calls.append(request.url)
        raise error("proxy refused", request=request)

    fetcher = _fetcher(handler, max_retries=3)
    with patch("catalog_sync.ingest.http_client.asyncio.sleep", new=AsyncMock()) as sleep:
        with pytest.raises(FetchExhausted) as exc_info:
            await fetcher.get("https://retailer.test/proxied")

    assert len(calls) == 1
    assert exc_info.value.attempts == 1
    assert isinstance(exc_info.value.last_error, error)
    sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_redirect_loop_is_a_fetch_error():
    def handler(request):
        return httpx.Response(302, headers={"Location": str(request.url)})

    fetcher = _fetcher(handler, max_retries=2)
    with pytest.raises(FetchExhausted) as exc_info:
        await fetcher.get("https://retailer.test/loop")

    assert isinstance(exc_info.value.last_error, httpx.TooManyRedirects)
