"""Persistent response cache: the facade over the index and the entry store.

:class:`ResponseCache` is the only component that mutates cache state. It
composes :class:`~fetchcache.cache.index.CacheIndex` and
:class:`~fetchcache.cache.store.EntryStore` and exposes ``get`` / ``set`` /
``list`` as coroutines. Blocking file I/O runs in worker threads so a slow
disk does not stall other requests on the event loop.

Write ordering is what keeps the index honest: :meth:`ResponseCache.set`
writes the entry files *before* recording the key in the index. A crash in
between leaves an unreachable file pair, never an index record pointing at
nothing -- except when files are removed behind the cache's back, which
:meth:`ResponseCache.get` repairs on the next lookup.

See Also:
    :class:`~fetchcache.proxy.ProxyService` -- the lookup-then-store flow
    built on top of this class.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

from fetchcache.cache.index import ENTRIES_DIRNAME, CacheIndex
from fetchcache.cache.keys import derive_key
from fetchcache.cache.store import EntryStore, LookupStatus
from fetchcache.exceptions import CacheError, CacheIOError
from fetchcache.models import (
    CachedEntry,
    ContentsItem,
    EntryMetadata,
    FetchResult,
    utc_timestamp,
)

logger = logging.getLogger(__name__)


class ResponseCache:
    """Disk-backed cache of origin responses, keyed by URL.

    Args:
        cache_dir: Root directory. ``index.json`` and an ``entries/``
            subdirectory are created inside it by :meth:`initialize`.

    Example::

        cache = ResponseCache("/var/cache/fetchcache")
        await cache.initialize()
        hit = await cache.get("https://example.com/")
        if hit is None:
            result = await fetcher.fetch("https://example.com/")
            await cache.set("https://example.com/", result, result.body)
    """

    def __init__(self, cache_dir: str | Path) -> None:
        self._cache_dir = Path(cache_dir)
        self._store = EntryStore(self._cache_dir / ENTRIES_DIRNAME)
        self._index: Optional[CacheIndex] = None
        self._index_lock = asyncio.Lock()

    @property
    def directory(self) -> Path:
        return self._cache_dir

    @property
    def initialized(self) -> bool:
        return self._index is not None

    async def initialize(self) -> None:
        """Load (or create) the index. Must run exactly once before any other call.

        Raises:
            CacheError: If the cache was already initialised.
            IndexCorruptError: If ``index.json`` exists but cannot be parsed.
            OSError: If the directory or index cannot be read or created.
        """
        if self._index is not None:
            raise CacheError(f"Cache at {self._cache_dir} is already initialized")
        self._index = await asyncio.to_thread(CacheIndex.load, self._cache_dir)
        logger.info(
            "Cache initialized at %s with %d entries", self._cache_dir, len(self._index)
        )

    async def get(self, url: str) -> Optional[CachedEntry]:
        """Return the cached entry for *url*, or ``None`` on a miss.

        A URL unknown to the index is a miss without any filesystem access.
        When the index knows the URL but its files are missing or torn, the
        stale record is removed (and the index rewritten) before returning
        ``None``. This method may therefore write to disk.

        Raises:
            CacheIOError: If the entry files exist but cannot be read.
            EntryCorruptError: If the metadata document cannot be parsed.
        """
        index = self._require_index()
        key = derive_key(url)
        if key not in index:
            return None

        lookup = await asyncio.to_thread(self._store.read, key)
        if lookup.status is LookupStatus.FOUND:
            return lookup.entry

        if lookup.status is LookupStatus.ABSENT:
            logger.warning("Dropping stale index record for %s (%s)", url, lookup.reason)
            async with self._index_lock:
                await asyncio.to_thread(index.remove, key)
            return None

        if isinstance(lookup.error, CacheError):
            raise lookup.error
        raise CacheIOError(f"Cannot read cache entry for {url}: {lookup.reason}") from lookup.error

    async def set(self, url: str, response: FetchResult, content: bytes) -> EntryMetadata:
        """Store *content* for *url* and record it in the index.

        Entry files are durably written first; the index is updated and
        persisted afterwards. Calling ``set`` again for the same URL
        overwrites the entry. Concurrent ``set`` calls for the same URL are
        not coordinated: the last writer wins.

        Args:
            url: The URL the content was fetched from.
            response: Origin response descriptor (status, headers, content type).
            content: Body bytes to cache verbatim.

        Returns:
            The metadata document that was written.

        Raises:
            OSError: If any file cannot be written.
        """
        index = self._require_index()
        key = derive_key(url)
        metadata = EntryMetadata(
            url=url,
            key=key,
            content_type=response.content_type,
            status_code=response.status_code,
            byte_size=len(content),
            cached_at=utc_timestamp(),
            headers=dict(response.headers),
        )

        await asyncio.to_thread(self._store.write, key, content, metadata)
        async with self._index_lock:
            await asyncio.to_thread(index.put, key, metadata.to_record())

        logger.info("Cached %s (%d bytes)", url, len(content))
        return metadata

    async def list(self) -> list[ContentsItem]:
        """Return ``{url, byteSize}`` for every indexed entry, in index order.

        Reads only the in-memory index.
        """
        index = self._require_index()
        return [
            ContentsItem(url=record.url, byte_size=record.byte_size)
            for record in index.snapshot()
        ]

    def stats(self) -> dict[str, Any]:
        """Return cache statistics.

        Returns:
            A ``dict`` with ``entries`` (number of indexed entries, ``0``
            before initialisation) and ``directory`` (str path).
        """
        return {
            "entries": len(self._index) if self._index is not None else 0,
            "directory": str(self._cache_dir),
        }

    def _require_index(self) -> CacheIndex:
        if self._index is None:
            raise CacheError("Cache used before initialize() was awaited")
        return self._index
