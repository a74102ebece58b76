"""Tests for the ResponseCache facade."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from unittest.mock import patch

import pytest

from fetchcache.cache import ResponseCache, derive_key
from fetchcache.exceptions import CacheError, CacheIOError, EntryCorruptError, IndexCorruptError
from fetchcache.models import FetchResult


URL = "https://origin.test/page"


def make_result(
    content_type: str = "text/plain", headers: dict[str, str] | None = None
) -> FetchResult:
    return FetchResult(
        status_code=200,
        headers=headers if headers is not None else {"content-type": content_type},
        content_type=content_type,
    )


def _run(coro):
    return asyncio.run(coro)


def _index_doc(cache_dir: Path) -> dict:
    return json.loads((cache_dir / "index.json").read_text(encoding="utf-8"))


# ------------------------------------------------------------------ #
# Lifecycle
# ------------------------------------------------------------------ #


class TestInitialize:
    def test_creates_directory_layout(self, cache_dir: Path) -> None:
        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            return cache

        cache = _run(scenario())
        assert cache.initialized
        assert (cache_dir / "entries").is_dir()
        assert _index_doc(cache_dir) == {}

    def test_second_initialize_raises(self, cache_dir: Path) -> None:
        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            await cache.initialize()

        with pytest.raises(CacheError, match="already initialized"):
            _run(scenario())

    @pytest.mark.parametrize("method", ["get", "list"])
    def test_use_before_initialize_raises(self, cache_dir: Path, method: str) -> None:
        async def scenario():
            cache = ResponseCache(cache_dir)
            if method == "get":
                await cache.get(URL)
            else:
                await cache.list()

        with pytest.raises(CacheError, match="before initialize"):
            _run(scenario())

    def test_set_before_initialize_raises(self, cache_dir: Path) -> None:
        async def scenario():
            await ResponseCache(cache_dir).set(URL, make_result(), b"hello")

        with pytest.raises(CacheError):
            _run(scenario())
        assert not (cache_dir / "entries").exists()

    def test_corrupt_index_fails_startup(self, cache_dir: Path) -> None:
        cache_dir.mkdir()
        (cache_dir / "index.json").write_text("not json", encoding="utf-8")

        async def scenario():
            await ResponseCache(cache_dir).initialize()

        with pytest.raises(IndexCorruptError):
            _run(scenario())

    def test_stats_before_and_after(self, cache_dir: Path) -> None:
        cache = ResponseCache(cache_dir)
        assert cache.stats() == {"entries": 0, "directory": str(cache_dir)}

        async def scenario():
            await cache.initialize()
            await cache.set(URL, make_result(), b"hello")

        _run(scenario())
        assert cache.stats()["entries"] == 1


# ------------------------------------------------------------------ #
# get / set
# ------------------------------------------------------------------ #


class TestGetSet:
    def test_round_trip(self, cache_dir: Path) -> None:
        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            written = await cache.set(
                URL, make_result(content_type="text/html"), b"<p>hi</p>"
            )
            return written, await cache.get(URL)

        written, hit = _run(scenario())
        assert hit is not None
        assert hit.content == b"<p>hi</p>"
        assert hit.metadata == written
        assert hit.metadata.key == derive_key(URL)
        assert hit.metadata.content_type == "text/html"
        assert hit.metadata.status_code == 200
        assert hit.metadata.byte_size == 9
        assert hit.metadata.cached_at.endswith("Z")

    def test_unknown_url_is_miss(self, cache_dir: Path) -> None:
        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            return await cache.get(URL)

        assert _run(scenario()) is None

    def test_unknown_url_does_not_touch_entries(self, cache_dir: Path) -> None:
        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            with patch("fetchcache.cache.store.EntryStore.read") as read:
                assert await cache.get(URL) is None
            read.assert_not_called()

        _run(scenario())

    def test_overwrite_replaces_entry(self, cache_dir: Path) -> None:
        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            await cache.set(URL, make_result(), b"first")
            await cache.set(URL, make_result(), b"second version")
            return await cache.get(URL), await cache.list()

        hit, items = _run(scenario())
        assert hit.content == b"second version"
        assert [(i.url, i.byte_size) for i in items] == [(URL, 14)]

    def test_set_writes_files_before_index(self, cache_dir: Path) -> None:
        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            with patch(
                "fetchcache.cache.store.EntryStore.write", side_effect=OSError("disk full")
            ):
                with pytest.raises(OSError):
                    await cache.set(URL, make_result(), b"hello")
            return await cache.list()

        assert _run(scenario()) == []
        assert _index_doc(cache_dir) == {}

    def test_headers_are_stored(self, cache_dir: Path) -> None:
        headers = {"content-type": "text/plain", "etag": '"v1"'}

        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            await cache.set(URL, make_result(headers=headers), b"hello")
            return await cache.get(URL)

        assert _run(scenario()).metadata.headers == headers

    def test_persists_across_restart(self, cache_dir: Path) -> None:
        async def first():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            await cache.set(URL, make_result(), b"durable")

        async def second():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            return await cache.get(URL)

        _run(first())
        hit = _run(second())
        assert hit is not None
        assert hit.content == b"durable"

    def test_concurrent_sets_for_distinct_urls(self, cache_dir: Path) -> None:
        urls = [f"https://origin.test/item/{n}" for n in range(10)]

        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            await asyncio.gather(
                *(cache.set(u, make_result(), u.encode()) for u in urls)
            )
            return await cache.list()

        items = _run(scenario())
        assert sorted(i.url for i in items) == sorted(urls)
        assert set(_index_doc(cache_dir)) == {derive_key(u) for u in urls}

    def test_concurrent_sets_for_same_url(self, cache_dir: Path) -> None:
        bodies = [bytes([65 + n]) * 8 for n in range(5)]

        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            await asyncio.gather(*(cache.set(URL, make_result(), b) for b in bodies))
            return await cache.get(URL)

        hit = _run(scenario())
        assert hit is not None
        assert hit.content in bodies
        assert hit.metadata.byte_size == len(hit.content)
        assert list((cache_dir / "entries").glob("*.tmp")) == []


# ------------------------------------------------------------------ #
# Self-healing
# ------------------------------------------------------------------ #


class TestSelfHeal:
    def _seed(self, cache_dir: Path, body: bytes = b"hello") -> None:
        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            await cache.set(URL, make_result(), body)

        _run(scenario())

    def _lookup(self, cache_dir: Path):
        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            hit = await cache.get(URL)
            return hit, await cache.list()

        return _run(scenario())

    def test_missing_content_drops_record(self, cache_dir: Path) -> None:
        self._seed(cache_dir)
        (cache_dir / "entries" / f"{derive_key(URL)}.content").unlink()

        hit, items = self._lookup(cache_dir)
        assert hit is None
        assert items == []
        assert _index_doc(cache_dir) == {}

    def test_missing_metadata_drops_record(self, cache_dir: Path) -> None:
        self._seed(cache_dir)
        (cache_dir / "entries" / f"{derive_key(URL)}.meta.json").unlink()

        hit, items = self._lookup(cache_dir)
        assert hit is None
        assert items == []

    def test_torn_overwrite_drops_record(self, cache_dir: Path) -> None:
        self._seed(cache_dir, b"old")
        (cache_dir / "entries" / f"{derive_key(URL)}.content").write_bytes(b"half new")

        hit, items = self._lookup(cache_dir)
        assert hit is None
        assert items == []

    def test_healed_url_can_be_cached_again(self, cache_dir: Path) -> None:
        self._seed(cache_dir)
        (cache_dir / "entries" / f"{derive_key(URL)}.content").unlink()

        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            assert await cache.get(URL) is None
            await cache.set(URL, make_result(), b"refetched")
            return await cache.get(URL)

        assert _run(scenario()).content == b"refetched"

    def test_corrupt_metadata_raises(self, cache_dir: Path) -> None:
        self._seed(cache_dir)
        (cache_dir / "entries" / f"{derive_key(URL)}.meta.json").write_text(
            "{oops", encoding="utf-8"
        )

        with pytest.raises(EntryCorruptError):
            self._lookup(cache_dir)
        # The record is kept; nothing is healed on a read failure.
        assert derive_key(URL) in _index_doc(cache_dir)

    def test_unreadable_entry_raises_cache_io_error(self, cache_dir: Path) -> None:
        self._seed(cache_dir)

        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            with patch.object(Path, "read_bytes", side_effect=PermissionError("denied")):
                await cache.get(URL)

        with pytest.raises(CacheIOError, match="denied") as excinfo:
            _run(scenario())
        assert isinstance(excinfo.value.__cause__, PermissionError)


# ------------------------------------------------------------------ #
# list
# ------------------------------------------------------------------ #


class TestList:
    def test_lists_url_and_size(self, cache_dir: Path) -> None:
        seeded = [
            ("https://a.test/one", b"12345"),
            ("https://b.test/two", b"123456789012"),
            ("https://c.test/empty", b""),
        ]

        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            for url, body in seeded:
                await cache.set(url, make_result(), body)
            return await cache.list()

        items = _run(scenario())
        assert len(items) == 3
        assert {(i.url, i.byte_size) for i in items} == {
            ("https://a.test/one", 5),
            ("https://b.test/two", 12),
            ("https://c.test/empty", 0),
        }
        assert items[0].model_dump(by_alias=True) == {
            "url": "https://a.test/one",
            "byteSize": 5,
        }

    def test_empty_cache(self, cache_dir: Path) -> None:
        async def scenario():
            cache = ResponseCache(cache_dir)
            await cache.initialize()
            return await cache.list()

        assert _run(scenario()) == []
