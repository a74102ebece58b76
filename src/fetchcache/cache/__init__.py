"""Persistent cache subsystem for fetchcache.

This package provides :class:`ResponseCache`, the facade used by the proxy
flow, plus the pieces it is built from:

* :func:`derive_key` -- URL -> 64-character SHA-256 hex key.
* :class:`EntryStore` -- ``entries/<key>.content`` and
  ``entries/<key>.meta.json``, read into an :class:`EntryLookup`.
* :class:`CacheIndex` -- ``index.json``, loaded at startup and rewritten
  after every mutation.

All writes go through :func:`~fetchcache.cache.atomic.atomic_write_bytes`.
"""

from fetchcache.cache.cache import ResponseCache
from fetchcache.cache.index import CacheIndex
from fetchcache.cache.keys import derive_key
from fetchcache.cache.store import EntryLookup, EntryStore, LookupStatus

__all__ = [
    "CacheIndex",
    "EntryLookup",
    "EntryStore",
    "LookupStatus",
    "ResponseCache",
    "derive_key",
]
