"""fetchcache -- a caching reverse-fetch proxy with a persistent on-disk cache.

Given a target URL, fetchcache returns the cached response body when one is
present, otherwise fetches the resource from its origin, persists it, and
returns it. Entries live forever; the cache directory survives restarts.

Typical workflow::

    fetchcache serve --port 9876            # run the HTTP proxy
    curl 'localhost:9876/GetURL?url=https://example.com'
    fetchcache contents                     # list what has been cached

Modules:
    app: Typer application and CLI entry point.
    server: FastAPI application factory (``/GetURL``, ``/Contents``, ``/health``).
    proxy: Lookup-then-store flow shared by the HTTP routes and the CLI.
    fetcher: Outbound HTTP retrieval over :mod:`httpx`.
    cache: Persistent cache subsystem (keys, entry store, index, facade).
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting and logging setup with Rich.
"""

__version__ = "0.1.0"
