"""Canonical Pydantic models shared across all fetchcache modules.

This is the single source of truth for data shapes in the project. The models
fall into three groups:

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`ServerConfig`, :class:`FetchConfig`, and :class:`AppConfig`.

**Cache models** -- the persisted documents of the cache subsystem:
    :class:`IndexRecord` (one value of ``index.json``), :class:`EntryMetadata`
    (``<key>.meta.json``), :class:`CachedEntry`, and :class:`ContentsItem`.

**Fetch models** -- the result shape of the fetch collaborator:
    :class:`FetchResult`.

Persisted documents use camelCase JSON field names (``byteSize``,
``cachedAt``, ...). The Python attributes are snake_case and mapped through
aliases, so always dump with ``model_dump(by_alias=True)`` when writing JSON.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# --- Configuration ---


class ServerConfig(BaseModel):
    """Listen address for ``fetchcache serve``."""

    host: str = Field(default="0.0.0.0", description="Interface to bind")
    port: int = Field(default=9876, ge=1, le=65535, description="TCP port to listen on")


class FetchConfig(BaseModel):
    """Settings for outbound retrieval from origin servers."""

    timeout: float = Field(
        default=30.0, gt=0, description="Total time budget per fetch, in seconds"
    )
    max_redirects: int = Field(default=5, ge=0, description="Redirects to follow")
    user_agent: str = Field(default="FileCachingServer/1.0")


class AppConfig(BaseModel):
    """Top-level configuration stored at ``<config_dir>/config.json``.

    Example::

        AppConfig(cache_dir="/var/cache/fetchcache", server=ServerConfig(port=8080))
    """

    cache_dir: Optional[str] = Field(
        default=None,
        description="Cache root directory; defaults to the XDG cache directory",
    )
    log_level: str = Field(default="info", description="debug, info, warning, error")
    server: ServerConfig = Field(default_factory=ServerConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)


# --- Cache documents ---


def utc_timestamp() -> str:
    """Return the current UTC time as ISO-8601 with milliseconds and a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class IndexRecord(BaseModel):
    """Summary of one cached entry, as stored in ``index.json``."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    byte_size: int = Field(alias="byteSize", ge=0)
    cached_at: str = Field(alias="cachedAt")


class EntryMetadata(BaseModel):
    """Full metadata document written next to an entry's content file.

    ``key`` is serialised as ``hash`` -- the 64-character hex digest that
    also names the entry's files.
    """

    model_config = ConfigDict(populate_by_name=True)

    url: str
    key: str = Field(alias="hash")
    content_type: str = Field(alias="contentType")
    status_code: int = Field(alias="statusCode")
    byte_size: int = Field(alias="byteSize", ge=0)
    cached_at: str = Field(alias="cachedAt")
    headers: dict[str, str] = Field(default_factory=dict)

    def to_record(self) -> IndexRecord:
        """Project this metadata onto the summary stored in the index."""
        return IndexRecord(url=self.url, byte_size=self.byte_size, cached_at=self.cached_at)


class CachedEntry(BaseModel):
    """A cache hit: the metadata document plus the raw body bytes."""

    metadata: EntryMetadata
    content: bytes


class ContentsItem(BaseModel):
    """Public listing shape returned by ``/Contents`` and ``fetchcache contents``."""

    model_config = ConfigDict(populate_by_name=True)

    url: str
    byte_size: int = Field(alias="byteSize")


# --- Fetching ---


class FetchResult(BaseModel):
    """What the fetch collaborator hands back for one origin response."""

    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""
    content_type: str = "application/octet-stream"

    @property
    def is_success(self) -> bool:
        """True for 2xx responses, the only ones eligible for caching."""
        return 200 <= self.status_code < 300
