"""FastAPI application exposing the proxy over HTTP.

Routes:

* ``GET /GetURL?url=<url>`` -- cached body, or fetch-store-return on a miss.
* ``GET /Contents`` -- ``[{url, byteSize}, ...]`` for everything cached.
* ``GET /health`` -- liveness plus cache statistics.

The cache is initialised in the application lifespan, before the first
request is accepted; a corrupt ``index.json`` aborts startup. Error bodies
are JSON objects with ``error`` and ``message`` keys.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from fetchcache import __version__
from fetchcache.cache import ResponseCache
from fetchcache.config import resolve_cache_dir
from fetchcache.exceptions import FetchError, InvalidURLError, UpstreamError
from fetchcache.fetcher import Fetcher
from fetchcache.models import AppConfig
from fetchcache.proxy import ProxyService

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[AppConfig] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the HTTP application.

    Args:
        config: Effective configuration (cache directory, port, fetch
            settings). Defaults to :class:`~fetchcache.models.AppConfig`.
        transport: Optional :mod:`httpx` transport for the outbound fetcher.

    Returns:
        A :class:`fastapi.FastAPI` instance. State (cache, proxy) is created
        when the lifespan starts and lives on ``app.state``.
    """
    config = config or AppConfig()
    cache_dir = resolve_cache_dir(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        cache = ResponseCache(cache_dir)
        await cache.initialize()
        async with Fetcher(config.fetch, transport=transport) as fetcher:
            app.state.cache = cache
            app.state.proxy = ProxyService(cache, fetcher)
            app.state.started_at = time.monotonic()
            yield
        logger.info("Server closed")

    app = FastAPI(title="fetchcache", version=__version__, lifespan=lifespan)

    # Wildcard origins require credentials to stay off.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/GetURL")
    async def get_url(request: Request, url: Optional[str] = Query(default=None)) -> Response:
        if not url:
            return JSONResponse(
                status_code=400,
                content={
                    "error": "Missing required parameter",
                    "message": "URL parameter is required",
                    "example": "/GetURL?url=https://example.com",
                },
            )

        proxy: ProxyService = request.app.state.proxy
        try:
            result = await proxy.get_url(url)
        except InvalidURLError as exc:
            return JSONResponse(
                status_code=400,
                content={"error": "Invalid URL", "message": str(exc), "url": url},
            )
        except UpstreamError as exc:
            return JSONResponse(
                status_code=exc.status_code,
                content={
                    "error": "Upstream error",
                    "message": str(exc),
                    "url": url,
                    "statusCode": exc.status_code,
                },
            )
        except FetchError as exc:
            logger.error("Failed to fetch %s: %s", url, exc)
            return JSONResponse(
                status_code=502,
                content={"error": "Failed to fetch URL", "message": str(exc), "url": url},
            )

        return Response(
            content=result.content,
            headers={
                "content-type": result.content_type,
                "X-Cache": "HIT" if result.cached else "MISS",
            },
        )

    @app.get("/Contents")
    async def contents(request: Request) -> list[dict[str, Any]]:
        proxy: ProxyService = request.app.state.proxy
        items = await proxy.contents()
        return [item.model_dump(by_alias=True) for item in items]

    @app.get("/health")
    async def health(request: Request) -> dict[str, Any]:
        cache: ResponseCache = request.app.state.cache
        return {
            "status": "healthy",
            "uptime": round(time.monotonic() - request.app.state.started_at, 3),
            "cacheDir": str(cache.directory),
            "port": config.server.port,
            "entries": cache.stats()["entries"],
        }

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unhandled error on %s: %s", request.url.path, exc, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "message": str(exc)},
        )

    return app
