"""Retrying HTTP client shared by every retailer client."""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from catalog_sync import metrics
from catalog_sync.config import settings

logger = logging.getLogger(__name__)

# Transport errors worth another attempt
RETRYABLE_EXC = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Retry and timeout policy applied to a single request."""

    max_retries: int = 3  # total attempts
    timeout: float = 25.0
    base_delay: float = 1.0
    max_delay: float = 5.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_retries=settings.http_max_retries,
            timeout=settings.http_timeout_seconds,
            base_delay=settings.http_retry_base_delay,
            max_delay=settings.http_retry_max_delay,
        )

    def backoff(self, attempt: int) -> float:
        """Delay after the given 1-based attempt: doubles, capped at max_delay."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


class FetchError(RuntimeError):
    """Base class for fetcher failures."""
    pass


class FetchExhausted(FetchError):
    """Raised when every attempt for a URL failed."""

    def __init__(
        self,
        url: str,
        attempts: int,
        status_code: Optional[int] = None,
        last_error: Optional[BaseException] = None,
    ):
        self.url = url
        self.attempts = attempts
        self.status_code = status_code
        self.last_error = last_error
        if status_code is not None:
            reason = f"HTTP {status_code}"
        else:
            reason = f"{type(last_error).__name__}: {last_error}" if last_error else "unknown error"
        super().__init__(f"{url} failed after {attempts} attempts ({reason})")


class PayloadError(FetchError):
    """Raised when a 2xx response does not carry valid JSON."""

    def __init__(self, url: str, detail: str):
        self.url = url
        super().__init__(f"{url}: invalid JSON payload ({detail})")


DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "tr-TR,tr;q=0.9,en;q=0.8",
}


async def fetch_with_retry(
    client: httpx.AsyncClient,
    url: str,
    policy: RetryPolicy,
    headers: Optional[dict[str, str]] = None,
) -> httpx.Response:
    """
    GET a URL, retrying non-2xx responses and transient transport errors.

    Args:
        client: httpx AsyncClient instance
        url: URL to fetch
        policy: RetryPolicy (attempt count, per-attempt timeout, backoff)
        headers: Optional headers merged over the defaults

    Returns:
        httpx.Response with a 2xx status

    Raises:
        FetchExhausted: When all attempts failed; carries the last status or error
    """
    hdrs = dict(DEFAULT_HEADERS)
    if headers:
        hdrs.update(headers)

    attempts = max(1, policy.max_retries)
    last_status: Optional[int] = None
    last_exc: Optional[BaseException] = None

    for attempt in range(1, attempts + 1):
        try:
            resp = await client.get(
                url,
                headers=hdrs,
                timeout=policy.timeout,
                follow_redirects=True,
            )
        except RETRYABLE_EXC as e:
            metrics.record_fetch_attempt(False)
            last_exc = e
            last_status = None
            reason = type(e).__name__
        except httpx.HTTPError as e:
            # Proxy, protocol, redirect and decoding errors will not improve on retry
            metrics.record_fetch_attempt(False)
            logger.warning(f"{url}: {type(e).__name__}, not retrying: {e}")
            raise FetchExhausted(url, attempt, last_error=e) from e
        else:
            if 200 <= resp.status_code < 300:
                metrics.record_fetch_attempt(True)
                return resp
            metrics.record_fetch_attempt(False)
            last_status = resp.status_code
            last_exc = None
            reason = f"status {resp.status_code}"

        if attempt < attempts:
            sleep_s = policy.backoff(attempt)
            logger.warning(
                f"{url}: {reason}, retrying in {sleep_s:.1f}s "
                f"(attempt {attempt}/{attempts})"
            )
            await asyncio.sleep(sleep_s)

    raise FetchExhausted(url, attempts, status_code=last_status, last_error=last_exc)


class HttpFetcher:
    """Owns an httpx client and applies one retry policy to every call."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        headers: Optional[dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.policy = policy or RetryPolicy.from_settings()
        self.headers = headers or {}
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            )
        return self._client

    async def get(self, url: str, headers: Optional[dict[str, str]] = None) -> httpx.Response:
        hdrs = dict(self.headers)
        if headers:
            hdrs.update(headers)
        return await fetch_with_retry(self._get_client(), url, self.policy, hdrs)

    async def get_json(self, url: str, headers: Optional[dict[str, str]] = None) -> Any:
        """Fetch a URL and decode its JSON body.

        Raises:
            FetchExhausted: When retries are exhausted
            PayloadError: When the body is not JSON
        """
        resp = await self.get(url, headers=headers)
        try:
            return resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise PayloadError(url, str(e)) from e

    async def close(self):
        """Close the underlying client if this fetcher created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
