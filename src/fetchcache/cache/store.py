"""Per-key entry artifacts: ``<key>.content`` and ``<key>.meta.json``.

:class:`EntryStore` reads and writes the two files that make up one cache
entry. It never touches the index; keeping the index consistent is the job of
:class:`~fetchcache.cache.cache.ResponseCache`.

Reads return an :class:`EntryLookup` rather than raising for the expected
"files are gone" case, so callers can tell a missing entry apart from a real
I/O failure without catching exceptions::

    lookup = store.read(key)
    if lookup.status is LookupStatus.FOUND:
        use(lookup.entry)
    elif lookup.status is LookupStatus.ABSENT:
        repair_index(key)
    else:
        raise lookup.error
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from fetchcache.cache.atomic import atomic_write_bytes, atomic_write_text
from fetchcache.exceptions import EntryCorruptError
from fetchcache.models import CachedEntry, EntryMetadata

logger = logging.getLogger(__name__)

CONTENT_SUFFIX = ".content"
META_SUFFIX = ".meta.json"


class LookupStatus(str, enum.Enum):
    """Outcome of :meth:`EntryStore.read`."""

    FOUND = "found"
    ABSENT = "absent"
    FAILURE = "failure"


@dataclass(frozen=True)
class EntryLookup:
    """Result of reading one entry: found, absent, or failed.

    Build instances with :meth:`found`, :meth:`absent` and :meth:`failure`.
    """

    status: LookupStatus
    entry: Optional[CachedEntry] = None
    error: Optional[Exception] = None
    reason: str = ""

    @classmethod
    def found(cls, entry: CachedEntry) -> EntryLookup:
        return cls(LookupStatus.FOUND, entry=entry)

    @classmethod
    def absent(cls, reason: str) -> EntryLookup:
        return cls(LookupStatus.ABSENT, reason=reason)

    @classmethod
    def failure(cls, error: Exception) -> EntryLookup:
        return cls(LookupStatus.FAILURE, error=error, reason=str(error))


class EntryStore:
    """Reads and writes entry artifacts under an ``entries/`` directory.

    Args:
        entries_dir: Directory holding ``<key>.content`` and
            ``<key>.meta.json`` files. Created by
            :meth:`~fetchcache.cache.index.CacheIndex.load`.
    """

    def __init__(self, entries_dir: Path) -> None:
        self._entries_dir = entries_dir

    @property
    def directory(self) -> Path:
        return self._entries_dir

    def content_path(self, key: str) -> Path:
        return self._entries_dir / f"{key}{CONTENT_SUFFIX}"

    def meta_path(self, key: str) -> Path:
        return self._entries_dir / f"{key}{META_SUFFIX}"

    def write(self, key: str, content: bytes, metadata: EntryMetadata) -> None:
        """Persist *content* and *metadata* for *key*.

        Content is written first, then metadata, each as an independent
        atomic replace. A crash in between leaves the previous metadata
        beside the new content; :meth:`read` detects the size mismatch and
        reports the entry as absent.

        Raises:
            OSError: If either file cannot be written (disk full,
                permission denied). Not retried.
        """
        atomic_write_bytes(self.content_path(key), content)
        document = metadata.model_dump(mode="json", by_alias=True)
        atomic_write_text(self.meta_path(key), json.dumps(document, indent=2))

    def read(self, key: str) -> EntryLookup:
        """Load both artifacts for *key*.

        Returns:
            ``FOUND`` with the entry when both files exist and agree on the
            byte size; ``ABSENT`` when either file is missing or the pair is
            inconsistent; ``FAILURE`` for any other I/O error or a metadata
            document that cannot be parsed.
        """
        try:
            raw_meta = self.meta_path(key).read_bytes()
            content = self.content_path(key).read_bytes()
        except FileNotFoundError as exc:
            return EntryLookup.absent(f"missing {Path(exc.filename or '').name}")
        except OSError as exc:
            return EntryLookup.failure(exc)

        try:
            metadata = EntryMetadata.model_validate(json.loads(raw_meta))
        except (json.JSONDecodeError, ValueError) as exc:
            return EntryLookup.failure(
                EntryCorruptError(f"Invalid metadata for entry {key}: {exc}")
            )

        if metadata.byte_size != len(content):
            logger.debug(
                "Entry %s is torn: metadata says %d bytes, content has %d",
                key,
                metadata.byte_size,
                len(content),
            )
            return EntryLookup.absent("content size does not match metadata")

        return EntryLookup.found(CachedEntry(metadata=metadata, content=content))
