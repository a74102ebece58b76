"""The cache index: ``<root>/index.json``.

:class:`CacheIndex` keeps a key -> :class:`~fetchcache.models.IndexRecord`
mapping in memory and rewrites the whole document atomically after every
mutation, so the file on disk never lags the in-memory view by more than one
rewrite. The index answers existence checks and listings without touching
entry files.

Lifecycle:

* :meth:`CacheIndex.load` runs once at startup. A missing ``index.json`` is
  created empty right away; an unreadable one aborts startup with
  :class:`~fetchcache.exceptions.IndexCorruptError` because resetting it
  would orphan every entry on disk.
* :meth:`put` and :meth:`remove` persist before returning.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterator, Optional

from pydantic import ValidationError

from fetchcache.cache.atomic import atomic_write_text
from fetchcache.exceptions import IndexCorruptError
from fetchcache.models import IndexRecord

logger = logging.getLogger(__name__)

INDEX_FILENAME = "index.json"
ENTRIES_DIRNAME = "entries"


class CacheIndex:
    """In-memory index backed by a single JSON document.

    Not safe for concurrent mutation; the owning
    :class:`~fetchcache.cache.cache.ResponseCache` serialises writers.

    Args:
        path: Location of ``index.json``.
        records: Initial contents, in insertion order.
    """

    def __init__(self, path: Path, records: Optional[dict[str, IndexRecord]] = None) -> None:
        self._path = path
        self._records: dict[str, IndexRecord] = dict(records or {})

    @classmethod
    def load(cls, cache_dir: Path) -> CacheIndex:
        """Open the index under *cache_dir*, creating the layout on first boot.

        Ensures ``<cache_dir>/entries/`` exists, then reads
        ``<cache_dir>/index.json``. When the document does not exist an empty
        index is persisted immediately.

        Raises:
            IndexCorruptError: If the document is not valid JSON, is not a
                JSON object, or contains a malformed record.
            OSError: For any other read failure (e.g. permission denied).
        """
        (cache_dir / ENTRIES_DIRNAME).mkdir(parents=True, exist_ok=True)
        path = cache_dir / INDEX_FILENAME

        try:
            raw = path.read_bytes()
        except FileNotFoundError:
            logger.info("No index at %s, creating an empty one", path)
            index = cls(path)
            index.persist()
            return index

        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise IndexCorruptError(f"Invalid cache index at {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise IndexCorruptError(
                f"Invalid cache index at {path}: expected a JSON object, "
                f"got {type(data).__name__}"
            )

        records: dict[str, IndexRecord] = {}
        for key, raw in data.items():
            try:
                records[key] = IndexRecord.model_validate(raw)
            except ValidationError as exc:
                raise IndexCorruptError(
                    f"Invalid cache index at {path}: bad record {key!r}: {exc}"
                ) from exc
        return cls(path, records)

    @property
    def path(self) -> Path:
        return self._path

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #

    def dumps(self) -> str:
        """Serialise the full index document."""
        document = {
            key: record.model_dump(mode="json", by_alias=True)
            for key, record in self._records.items()
        }
        return json.dumps(document, indent=2)

    def persist(self) -> None:
        """Rewrite ``index.json`` atomically from the in-memory records."""
        atomic_write_text(self._path, self.dumps())

    # ------------------------------------------------------------------ #
    # Map operations
    # ------------------------------------------------------------------ #

    def get(self, key: str) -> Optional[IndexRecord]:
        return self._records.get(key)

    def put(self, key: str, record: IndexRecord) -> None:
        """Insert or replace the record for *key* and persist."""
        self._records[key] = record
        self.persist()

    def remove(self, key: str) -> bool:
        """Drop the record for *key* and persist.

        Returns:
            ``True`` if a record was removed. Removing an unknown key is a
            no-op and does not rewrite the document.
        """
        if self._records.pop(key, None) is None:
            return False
        self.persist()
        return True

    def snapshot(self) -> list[IndexRecord]:
        """Return all records in insertion order."""
        return list(self._records.values())

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._records))
