"""Atomic file replacement.

Every file the cache writes (``index.json``, entry content, entry metadata)
and the config file go through :func:`atomic_write_bytes`: the data lands in
a uniquely named sibling ending in ``.tmp``, is flushed and fsynced, and is
then renamed over the final path with :func:`os.replace`. The rename is the
only externally observable transition, so a reader sees either the previous
complete file or the new complete file, never a truncated one.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional

TMP_SUFFIX = ".tmp"


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write *data* to *path* atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. Concurrent writers
    to the same path each get their own temp file; the last rename wins.
    On any failure the temp file is removed and the error re-raised.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="wb",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=TMP_SUFFIX,
            delete=False,
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def atomic_write_text(path: Path, text: str) -> None:
    """UTF-8 encode *text* and write it with :func:`atomic_write_bytes`."""
    atomic_write_bytes(path, text.encode("utf-8"))
