"""Cache key derivation.

A key is the SHA-256 digest of the URL string, hex-encoded: 64 lowercase
characters, safe to use as a file name on every platform. Keys are never
reversed; the URL is stored next to the entry instead.
"""

from __future__ import annotations

import hashlib

KEY_LENGTH = 64


def derive_key(url: str) -> str:
    """Return the cache key for *url*.

    The URL is hashed exactly as given (no normalisation), so
    ``https://example.com`` and ``https://example.com/`` are distinct entries.
    """
    return hashlib.sha256(url.encode("utf-8", "surrogatepass")).hexdigest()
