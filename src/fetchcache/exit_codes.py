"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~fetchcache.exceptions.FetchCacheError` subclass.
Shell wrappers can inspect the exit code of ``fetchcache get`` to tell a
broken cache from an unreachable origin without parsing stderr.

Example::

    $ fetchcache get https://unreachable.invalid/
    $ echo $?
    6   # EXIT_FETCH_ERROR -- the origin could not be reached
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments (e.g. a malformed URL)."""

EXIT_UPSTREAM_ERROR = 5
"""The origin answered with a non-2xx status code; nothing was cached."""

EXIT_FETCH_ERROR = 6
"""The origin could not be fetched (timeout, DNS failure, connection refused, bad scheme)."""

EXIT_CACHE_ERROR = 8
"""The cache directory is corrupt or unreadable."""
