"""Lookup-then-store flow shared by the HTTP routes and the CLI.

:class:`ProxyService` answers "give me this URL": consult the cache, fetch
from the origin on a miss, and store the result when the origin answered
with a 2xx status. Non-2xx responses and fetch failures are never cached.

Concurrent misses for the same URL are not coalesced; each performs its own
fetch and its own write, and the last write wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fetchcache.cache import ResponseCache
from fetchcache.exceptions import UpstreamError
from fetchcache.fetcher import Fetcher, parse_url
from fetchcache.models import ContentsItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProxyResponse:
    """Body and content type to hand back to the caller."""

    content: bytes
    content_type: str
    status_code: int
    cached: bool


class ProxyService:
    """Serve URLs from a :class:`~fetchcache.cache.ResponseCache`, fetching on miss.

    Args:
        cache: An initialised cache.
        fetcher: An open :class:`~fetchcache.fetcher.Fetcher`.
        fetch_timeout: Per-fetch budget in seconds; ``None`` uses the
            fetcher's configured timeout.
    """

    def __init__(
        self,
        cache: ResponseCache,
        fetcher: Fetcher,
        fetch_timeout: Optional[float] = None,
    ) -> None:
        self._cache = cache
        self._fetcher = fetcher
        self._fetch_timeout = fetch_timeout

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    async def get_url(self, url: str) -> ProxyResponse:
        """Return the body for *url*, from cache when possible.

        Raises:
            InvalidURLError: If *url* is not an absolute URL.
            UpstreamError: If the origin answered with a non-2xx status.
            FetchError: If the origin could not be fetched.
            CacheError: If the cache is unreadable.
        """
        parse_url(url)

        cached = await self._cache.get(url)
        if cached is not None:
            logger.info("Cache HIT %s", url)
            return ProxyResponse(
                content=cached.content,
                content_type=cached.metadata.content_type,
                status_code=cached.metadata.status_code,
                cached=True,
            )

        logger.info("Cache MISS - fetching %s", url)
        result = await self._fetcher.fetch(url, timeout=self._fetch_timeout)
        if not result.is_success:
            logger.info("Not caching %s: upstream returned %d", url, result.status_code)
            raise UpstreamError(result.status_code, url)

        await self._cache.set(url, result, result.body)
        return ProxyResponse(
            content=result.body,
            content_type=result.content_type,
            status_code=result.status_code,
            cached=False,
        )

    async def contents(self) -> list[ContentsItem]:
        """List everything the cache currently indexes."""
        return await self._cache.list()
