"""Exception hierarchy for fetchcache.

All exceptions inherit from :class:`FetchCacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`fetchcache.exit_codes`.
The CLI entry point :func:`fetchcache.app.main` catches ``FetchCacheError``
and exits with the appropriate code; the HTTP layer in
:mod:`fetchcache.server` maps the same classes onto status codes.

Subclass hierarchy::

    FetchCacheError (exit 1)
    +-- InvalidUsageError        (exit 2)
    |   +-- InvalidURLError      (exit 2)
    +-- ConfigError              (exit 1)
    +-- CacheError               (exit 8)
    |   +-- IndexCorruptError
    |   +-- EntryCorruptError
    |   +-- CacheIOError
    +-- FetchError               (exit 6)
    |   +-- FetchTimeoutError
    |   +-- FetchNetworkError
    |   +-- UnsupportedSchemeError
    +-- UpstreamError            (exit 5)

A cache entry whose files are missing is *not* an exception: the entry store
reports it as :attr:`~fetchcache.cache.store.LookupStatus.ABSENT` and the
cache facade repairs its index.
"""

from fetchcache.exit_codes import (
    EXIT_CACHE_ERROR,
    EXIT_FETCH_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_UPSTREAM_ERROR,
)


class FetchCacheError(Exception):
    """Base exception for all fetchcache errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`fetchcache.exit_codes`.

    Args:
        message: Human-readable error description.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(FetchCacheError):
    """Raised for invalid CLI arguments or request parameters."""

    exit_code = EXIT_INVALID_USAGE


class InvalidURLError(InvalidUsageError):
    """Raised when the target URL cannot be parsed as an absolute URL."""


class ConfigError(FetchCacheError):
    """Raised for configuration problems (invalid JSON, bad values, bad env vars)."""

    exit_code = EXIT_GENERIC_FAILURE


class CacheError(FetchCacheError):
    """Base class for failures of the persistent cache subsystem."""

    exit_code = EXIT_CACHE_ERROR


class IndexCorruptError(CacheError):
    """Raised at startup when ``index.json`` exists but cannot be parsed.

    Treating a corrupt index as empty would orphan every entry on disk, so
    this is always fatal.
    """


class EntryCorruptError(CacheError):
    """Raised when an entry's metadata document is not valid JSON or fails validation."""


class CacheIOError(CacheError):
    """Raised when reading an entry fails for a reason other than a missing file."""


class FetchError(FetchCacheError):
    """Raised when the origin could not be fetched. Never cached."""

    exit_code = EXIT_FETCH_ERROR


class FetchTimeoutError(FetchError):
    """Raised when a fetch exceeds the configured timeout."""


class FetchNetworkError(FetchError):
    """Raised on network-level failures (DNS resolution, connection refused, reset)."""


class UnsupportedSchemeError(FetchError):
    """Raised when the target URL uses a scheme other than ``http`` or ``https``."""


class UpstreamError(FetchCacheError):
    """Raised when the origin answers with a non-2xx status code.

    Not a cache failure: the response is simply never stored.

    Args:
        status_code: The HTTP status code returned by the origin.
        url: The target URL that was fetched.
    """

    exit_code = EXIT_UPSTREAM_ERROR

    def __init__(self, status_code: int, url: str):
        super().__init__(f"Received {status_code} from upstream server")
        self.status_code = status_code
        self.url = url
