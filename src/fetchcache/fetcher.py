"""Outbound retrieval from origin servers.

This module provides :class:`Fetcher`, a thin async wrapper around
:class:`httpx.AsyncClient` that turns one URL into a
:class:`~fetchcache.models.FetchResult`. It validates the scheme, follows
redirects, enforces a total time budget per fetch, and maps transport
failures onto :class:`~fetchcache.exceptions.FetchError` subclasses with
human-readable messages.

There is no retry policy: one failed or timed-out fetch is reported
immediately, and nothing about the failure is cached.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional
from urllib.parse import urlsplit

import httpx

from fetchcache.exceptions import (
    FetchError,
    FetchNetworkError,
    FetchTimeoutError,
    InvalidURLError,
    UnsupportedSchemeError,
)
from fetchcache.models import FetchConfig, FetchResult

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def parse_url(url: str) -> None:
    """Check that *url* is an absolute URL (scheme and host present).

    Raises:
        InvalidURLError: If *url* cannot be parsed or is relative.
    """
    try:
        parts = urlsplit(url)
    except ValueError as exc:
        raise InvalidURLError(f"Invalid URL: {exc}") from exc
    if not parts.scheme:
        raise InvalidURLError(f"Invalid URL: {url!r} has no scheme")
    if parts.scheme.lower() in ALLOWED_SCHEMES and not parts.netloc:
        raise InvalidURLError(f"Invalid URL: {url!r} has no host")


def check_scheme(url: str) -> None:
    """Reject anything that is not an ``http`` or ``https`` URL.

    Raises:
        InvalidURLError: If *url* is not absolute.
        UnsupportedSchemeError: If the scheme is not ``http`` / ``https``.
    """
    parse_url(url)
    scheme = urlsplit(url).scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        raise UnsupportedSchemeError(
            f"Unsupported protocol: {scheme}:. Only http: and https: are allowed."
        )


class Fetcher:
    """Async fetcher for origin URLs. Must be used as an async context manager.

    Args:
        config: Timeout, redirect limit and ``User-Agent``.
        transport: Optional :mod:`httpx` transport; tests pass an
            :class:`httpx.MockTransport`.

    Example::

        async with Fetcher(FetchConfig(timeout=10)) as fetcher:
            result = await fetcher.fetch("https://example.com/")
    """

    def __init__(
        self,
        config: Optional[FetchConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or FetchConfig()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> Fetcher:
        self._client = httpx.AsyncClient(
            timeout=self._config.timeout,
            follow_redirects=True,
            max_redirects=self._config.max_redirects,
            headers={"User-Agent": self._config.user_agent},
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Fetching
    # ------------------------------------------------------------------ #

    async def fetch(self, url: str, timeout: Optional[float] = None) -> FetchResult:
        """GET *url* and return its status, headers and body.

        Non-2xx responses are returned, not raised; deciding what to cache
        is the caller's business.

        Args:
            url: Absolute ``http`` or ``https`` URL.
            timeout: Total budget in seconds; defaults to the configured
                ``fetch.timeout``. On expiry the request is cancelled.

        Raises:
            InvalidURLError: If *url* is not absolute.
            UnsupportedSchemeError: If the scheme is not http/https.
            FetchTimeoutError: If the budget is exceeded.
            FetchNetworkError: On DNS, connection or transport failures.
            FetchError: On any other failure (e.g. too many redirects).
        """
        if self._client is None:
            raise RuntimeError("Fetcher must be used inside 'async with'")
        check_scheme(url)

        budget = timeout if timeout is not None else self._config.timeout
        try:
            response = await asyncio.wait_for(self._client.get(url, timeout=budget), budget)
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            raise FetchTimeoutError(f"Request timeout after {int(budget * 1000)}ms") from exc
        except (httpx.ConnectError, httpx.NetworkError) as exc:
            raise FetchNetworkError(f"Network error: {exc}") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise FetchError(f"Failed to fetch: {exc}") from exc

        headers = dict(response.headers.items())
        logger.debug("Fetched %s -> %d (%d bytes)", url, response.status_code, len(response.content))
        return FetchResult(
            status_code=response.status_code,
            headers=headers,
            body=response.content,
            content_type=response.headers.get("content-type", DEFAULT_CONTENT_TYPE),
        )
