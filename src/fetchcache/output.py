"""Terminal output and logging for the fetchcache CLI.

Two streams, two jobs:

* **stdout** carries data only: cached bodies, the ``contents`` listing,
  ``config show`` dumps. Piping ``fetchcache get URL > file`` must produce
  exactly the origin's bytes.
* **stderr** carries everything a human reads: HIT/MISS notes, warnings,
  errors and log records.

Rendering follows the terminal. An interactive stdout gets Rich tables and
highlighted JSON; a pipe gets tab-separated text. ``NO_COLOR``,
``TERM=dumb`` and ``--no-color`` all switch colour off.

:class:`OutputManager` holds the per-invocation preferences. The CLI root
callback installs one with :func:`set_output`; command code calls the
module-level helpers (:func:`info`, :func:`print_rows`, ...), which look it up
through :func:`get_output`. :func:`setup_logging` attaches a
:class:`rich.logging.RichHandler` to the ``fetchcache`` logger tree.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from enum import Enum
from typing import Any, Optional, Sequence

from rich.console import Console
from rich.logging import RichHandler
from rich.syntax import Syntax
from rich.table import Table

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

_PLAIN_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class OutputFormat(str, Enum):
    """How data written to stdout is rendered. ``AUTO`` picks by terminal."""

    AUTO = "auto"
    JSON = "json"
    PLAIN = "plain"
    RICH = "rich"


def _is_tty() -> bool:
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def _should_disable_color() -> bool:
    """True when ``NO_COLOR`` is set to anything or ``TERM`` is ``dumb``."""
    return "NO_COLOR" in os.environ or os.environ.get("TERM") == "dumb"


def _dumps(data: Any, pretty: bool = True) -> str:
    return json.dumps(data, indent=2 if pretty else None, ensure_ascii=False, default=str)


class OutputManager:
    """Per-invocation output preferences and the Rich consoles behind them.

    Args:
        format: Requested stdout format; ``AUTO`` becomes ``RICH`` on a
            colour-capable terminal and ``PLAIN`` everywhere else.
        no_color: Strip colour and markup from both streams.
        quiet: Drop ``info`` and ``success`` notes. Warnings and errors
            are always shown.
        verbose: Show ``debug`` notes.
    """

    def __init__(
        self,
        format: OutputFormat = OutputFormat.AUTO,
        no_color: bool = False,
        quiet: bool = False,
        verbose: bool = False,
    ) -> None:
        self._no_color = no_color or _should_disable_color()
        self._quiet = quiet
        self._verbose = verbose

        rich_capable = _is_tty() and not self._no_color
        if format is OutputFormat.AUTO:
            format = OutputFormat.RICH if rich_capable else OutputFormat.PLAIN
        self._format = format

        self._stdout = Console(
            file=sys.stdout,
            no_color=self._no_color,
            force_terminal=format is OutputFormat.RICH,
        )
        self._stderr = Console(file=sys.stderr, no_color=self._no_color, stderr=True)

    @property
    def format(self) -> OutputFormat:
        return self._format

    @property
    def is_quiet(self) -> bool:
        return self._quiet

    @property
    def is_verbose(self) -> bool:
        return self._verbose

    @property
    def no_color(self) -> bool:
        return self._no_color

    @property
    def stderr_console(self) -> Console:
        """Console bound to stderr; :func:`setup_logging` logs through it."""
        return self._stderr

    # --- stdout ---

    def print_data(self, text: str) -> None:
        sys.stdout.write(text + "\n")
        sys.stdout.flush()

    def format_response(self, data: Any) -> None:
        """Write a JSON-compatible value to stdout.

        Plain mode prints a dict as ``key<TAB>value`` lines so it can be
        fed to ``cut`` or ``awk``; other values fall back to compact JSON.
        """
        if self._format is OutputFormat.RICH:
            self._stdout.print(Syntax(_dumps(data), "json", word_wrap=True))
        elif self._format is OutputFormat.JSON:
            self.print_data(_dumps(data))
        elif isinstance(data, dict):
            for key, value in data.items():
                self.print_data(f"{key}\t{value}")
        else:
            self.print_data(_dumps(data, pretty=False))

    def print_rows(
        self,
        columns: Sequence[str],
        rows: Sequence[Sequence[str]],
        title: Optional[str] = None,
    ) -> None:
        """Write a listing to stdout: a Rich table, a JSON array, or TSV."""
        if self._format is OutputFormat.JSON:
            self.print_data(_dumps([dict(zip(columns, row)) for row in rows]))
            return
        if self._format is OutputFormat.PLAIN:
            for line in (columns, *rows):
                self.print_data("\t".join(line))
            return

        table = Table(*columns, title=title, header_style="bold cyan")
        for row in rows:
            table.add_row(*row)
        self._stdout.print(table)

    # --- stderr ---

    def info(self, message: str) -> None:
        if not self._quiet:
            self._note(message)

    def success(self, message: str) -> None:
        if not self._quiet:
            self._note(message, style="green")

    def warning(self, message: str) -> None:
        self._note(message, label="Warning:", style="yellow")

    def error(self, message: str) -> None:
        self._note(message, label="Error:", style="bold red")

    def debug(self, message: str) -> None:
        if self._verbose:
            self._note(message, label="[debug]", style="dim")

    def _note(self, message: str, label: str = "", style: str = "") -> None:
        text = f"{label} {message}" if label else message
        if self._no_color:
            sys.stderr.write(text + "\n")
            sys.stderr.flush()
        else:
            self._stderr.print(text, style=style or None, markup=False, highlight=False)


def parse_log_level(name: str) -> int:
    """Map ``info``, ``DEBUG``, ``warn`` ... to a :mod:`logging` level; default ``INFO``."""
    return LOG_LEVELS.get(name.strip().lower(), logging.INFO)


def setup_logging(level: str = "info", verbose: bool = False) -> None:
    """Route the ``fetchcache`` logger tree to stderr.

    Replaces any handler installed by an earlier call, so it is safe to
    call once per command.

    Args:
        level: Level name from the resolved configuration.
        verbose: Force ``DEBUG`` regardless of *level*.
    """
    output = get_output()
    if output.no_color:
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_PLAIN_LOG_FORMAT))
    else:
        handler = RichHandler(console=output.stderr_console, show_path=False, markup=False)

    logger = logging.getLogger("fetchcache")
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if verbose else parse_log_level(level))
    logger.propagate = False


# --- process-wide instance ---

_output: Optional[OutputManager] = None


def get_output() -> OutputManager:
    """Return the installed manager, creating a default one on first use."""
    global _output
    if _output is None:
        _output = OutputManager()
    return _output


def set_output(output: OutputManager) -> None:
    global _output
    _output = output


def reset_output() -> None:
    """Forget the installed manager. CliRunner swaps the std streams per run."""
    global _output
    _output = None


def format_response(data: Any) -> None:
    get_output().format_response(data)


def print_rows(
    columns: Sequence[str],
    rows: Sequence[Sequence[str]],
    title: Optional[str] = None,
) -> None:
    get_output().print_rows(columns, rows, title)


def info(message: str) -> None:
    get_output().info(message)


def success(message: str) -> None:
    get_output().success(message)


def error(message: str) -> None:
    get_output().error(message)
