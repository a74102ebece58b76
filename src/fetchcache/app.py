"""Typer application and CLI entry point for fetchcache.

Commands:

* ``fetchcache serve`` -- run the HTTP proxy (:mod:`fetchcache.server`)
  under uvicorn.
* ``fetchcache get URL`` -- run the lookup-then-store flow once and write
  the body to stdout or a file.
* ``fetchcache contents`` -- list cached URLs and their sizes.
* ``fetchcache config show|init`` -- inspect or create the config file.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. :class:`~fetchcache.exceptions.FetchCacheError`
instances end the process with their ``exit_code``.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import typer

from fetchcache import __version__
from fetchcache.exit_codes import EXIT_GENERIC_FAILURE

if TYPE_CHECKING:
    from fetchcache.models import AppConfig
    from fetchcache.proxy import ProxyResponse


app = typer.Typer(
    name="fetchcache",
    help="Caching reverse-fetch proxy with a persistent on-disk cache.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)

config_app = typer.Typer(no_args_is_help=True)
app.add_typer(config_app, name="config", help="Configuration management.")


def _version_callback(value: bool) -> None:
    """Print version and exit when --version is passed."""
    if value:
        typer.echo(f"fetchcache {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    cache_dir: Optional[str] = typer.Option(
        None, "--cache-dir", "-d", help="Cache root directory."
    ),
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Config file to read instead of the default."
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(
        False, "--quiet", "-q", help="Suppress non-essential output."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~fetchcache.output.OutputManager` and stores
    the shared options in ``ctx.obj`` for sub-commands.
    """
    from fetchcache.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))

    ctx.ensure_object(dict)
    ctx.obj["cache_dir"] = cache_dir
    ctx.obj["config_file"] = config_file
    ctx.obj["verbose"] = verbose


def _resolve(ctx: typer.Context, **overrides: Any) -> AppConfig:
    """Resolve the effective config from ``ctx.obj`` plus command-level flags."""
    from fetchcache.config import resolve_config

    obj = ctx.obj or {}
    return resolve_config(
        cli_config_path=obj.get("config_file"),
        cli_cache_dir=obj.get("cache_dir"),
        **overrides,
    )


# ------------------------------------------------------------------ #
# serve
# ------------------------------------------------------------------ #


@app.command("serve")
def serve_command(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Interface to bind."),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port to listen on."),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="debug, info, warning or error."
    ),
) -> None:
    """Run the HTTP proxy.

    Example::

        fetchcache serve --port 9876
        CACHE_DIR=/srv/cache fetchcache serve
    """
    import uvicorn

    from fetchcache.config import resolve_cache_dir
    from fetchcache.output import setup_logging, success
    from fetchcache.server import create_app

    config = _resolve(ctx, cli_host=host, cli_port=port, cli_log_level=log_level)
    setup_logging(config.log_level, verbose=(ctx.obj or {}).get("verbose", False))

    success(f"File Caching Server running on http://{config.server.host}:{config.server.port}")
    success(f"Cache directory: {resolve_cache_dir(config)}")
    uvicorn.run(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        log_level=config.log_level.lower(),
    )


# ------------------------------------------------------------------ #
# get / contents
# ------------------------------------------------------------------ #


@app.command("get")
def get_command(
    ctx: typer.Context,
    url: str = typer.Argument(help="URL to return from cache or fetch."),
    output_file: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the body to this file instead of stdout."
    ),
) -> None:
    """Return URL from the cache, fetching and caching it on a miss.

    Only 2xx responses are cached. The body goes to stdout as raw bytes;
    HIT/MISS goes to stderr.

    Example::

        fetchcache get https://example.com/ > page.html
        fetchcache get https://example.com/logo.png -o logo.png
    """
    from fetchcache.config import resolve_cache_dir
    from fetchcache.output import info, setup_logging

    config = _resolve(ctx)
    setup_logging(config.log_level, verbose=(ctx.obj or {}).get("verbose", False))
    result = asyncio.run(_fetch_once(config, resolve_cache_dir(config), url))

    info(f"Cache {'HIT' if result.cached else 'MISS'}: {url} ({len(result.content)} bytes)")
    if output_file is not None:
        output_file.write_bytes(result.content)
    else:
        typer.echo(result.content, nl=False)


async def _fetch_once(config: AppConfig, cache_dir: Path, url: str) -> ProxyResponse:
    from fetchcache.cache import ResponseCache
    from fetchcache.fetcher import Fetcher
    from fetchcache.proxy import ProxyService

    cache = ResponseCache(cache_dir)
    await cache.initialize()
    async with Fetcher(config.fetch) as fetcher:
        return await ProxyService(cache, fetcher).get_url(url)


@app.command("contents")
def contents_command(ctx: typer.Context) -> None:
    """List cached URLs and their sizes in bytes."""
    from fetchcache.cache import ResponseCache
    from fetchcache.config import resolve_cache_dir
    from fetchcache.output import info, print_rows

    config = _resolve(ctx)
    cache_dir = resolve_cache_dir(config)

    async def _list():
        cache = ResponseCache(cache_dir)
        await cache.initialize()
        return await cache.list()

    items = asyncio.run(_list())
    info(f"{len(items)} cached entries in {cache_dir}")
    print_rows(
        ["url", "byteSize"],
        [[item.url, str(item.byte_size)] for item in items],
        title="Cached URLs",
    )


# ------------------------------------------------------------------ #
# config
# ------------------------------------------------------------------ #


@config_app.command("show")
def config_show(ctx: typer.Context) -> None:
    """Show the effective configuration (file, environment and flags merged)."""
    from fetchcache.config import config_path, resolve_cache_dir
    from fetchcache.output import format_response, info

    config = _resolve(ctx)
    obj = ctx.obj or {}
    info(f"Config file: {obj.get('config_file') or config_path()}")
    data = config.model_dump(mode="json")
    data["cache_dir"] = str(resolve_cache_dir(config))
    format_response(data)


@config_app.command("init")
def config_init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file."),
) -> None:
    """Write a config file holding the default settings.

    Raises:
        typer.Exit: With code 2 if the file exists and ``--force`` was not given.
    """
    from fetchcache.config import config_path, save_config
    from fetchcache.models import AppConfig
    from fetchcache.output import error, success

    obj = ctx.obj or {}
    target = Path(obj["config_file"]).expanduser() if obj.get("config_file") else config_path()
    if target.exists() and not force:
        error(f"Config file already exists: {target} (use --force to overwrite)")
        raise typer.Exit(code=2)

    save_config(AppConfig(), target)
    success(f"Wrote {target}")


# ------------------------------------------------------------------ #
# Entry point
# ------------------------------------------------------------------ #


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def main() -> None:
    """CLI entry point invoked by the ``fetchcache`` console script.

    :class:`~fetchcache.exceptions.FetchCacheError` instances cause a clean
    exit with the error's ``exit_code``; anything else is reported and
    exits with :data:`~fetchcache.exit_codes.EXIT_GENERIC_FAILURE`.
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from fetchcache.exceptions import FetchCacheError
        from fetchcache.output import error

        if isinstance(exc, FetchCacheError):
            error(str(exc))
            sys.exit(exc.exit_code)
        error(f"Unexpected error: {exc}")
        sys.exit(EXIT_GENERIC_FAILURE)
