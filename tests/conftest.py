"""Shared test fixtures for fetchcache.

Provides an isolated environment (no user config, no stray env vars),
cache directories under ``tmp_path``, and helpers for building origin
responses and mock transports. These fixtures are automatically discovered
by pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from fetchcache.models import AppConfig, FetchConfig
from fetchcache.output import OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Global state isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Point XDG dirs into tmp_path and drop fetchcache env overrides."""
    for var in (
        "FETCHCACHE_CACHE_DIR",
        "CACHE_DIR",
        "FETCHCACHE_PORT",
        "PORT",
        "FETCHCACHE_LOG_LEVEL",
        "LOG_LEVEL",
        "FETCHCACHE_FETCH_TIMEOUT",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    monkeypatch.setattr("fetchcache.config._is_xdg_platform", lambda: True)


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Install a quiet, colourless OutputManager and reset it afterwards.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time; CliRunner swaps those streams, so a stale manager would
    write to closed files.
    """
    set_output(OutputManager(no_color=True, quiet=True))
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Cache fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """Root directory for a cache under test (not created)."""
    return tmp_path / "cache"


@pytest.fixture
def app_config(cache_dir: Path) -> AppConfig:
    """Configuration pointing at ``cache_dir`` with a short fetch timeout."""
    return AppConfig(cache_dir=str(cache_dir), fetch=FetchConfig(timeout=5))


# ---------------------------------------------------------------------------
# Origin helpers
# ---------------------------------------------------------------------------


class OriginRecorder:
    """httpx handler that serves canned responses and records requests."""

    def __init__(self) -> None:
        self.routes: dict[str, httpx.Response] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        url: str,
        body: bytes = b"hello",
        status_code: int = 200,
        content_type: str = "text/plain",
    ) -> None:
        self.routes[url] = httpx.Response(
            status_code=status_code,
            headers={"content-type": content_type},
            content=body,
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        canned = self.routes.get(str(request.url))
        if canned is None:
            return httpx.Response(404, content=b"not found")
        return httpx.Response(
            status_code=canned.status_code,
            headers=canned.headers,
            content=canned.content,
        )

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def origin() -> OriginRecorder:
    """A fake origin server for httpx.MockTransport."""
    return OriginRecorder()
