"""
Path Utilities
==============

OS-aware file helpers for writing the container safely.
"""

from __future__ import annotations

import os
import platform
import tempfile
from pathlib import Path
from typing import Final

TEMP_PREFIX: Final[str] = ".vaulttree-"


def sibling_temp_file(target: Path, prefix: str = TEMP_PREFIX) -> tuple[int, Path]:
    """
    Create an empty temporary file next to ``target``.

    The file lives in the same directory so that a later rename onto
    ``target`` stays on one filesystem and is atomic.

    Returns:
        ``(fd, path)`` as from :func:`tempfile.mkstemp`
    """
    fd, name = tempfile.mkstemp(prefix=prefix, dir=str(target.parent))
    return fd, Path(name)


def restrict_permissions(path: Path) -> None:
    """Make ``path`` readable and writable by its owner only."""
    if platform.system().lower() != "windows":
        path.chmod(0o600)


def write_and_sync(fd: int, data: bytes) -> None:
    """Write all of ``data`` to ``fd``, fsync it and close it."""
    with os.fdopen(fd, "wb") as handle:
        handle.write(data)
        handle.flush()
        os.fsync(handle.fileno())


def discard(path: Path) -> None:
    """Remove ``path`` if it still exists."""
    try:
        path.unlink()
    except FileNotFoundError:
        pass


def stat_signature(path: Path) -> tuple[str, int, int, int]:
    """Return a tuple that changes whenever ``path`` is replaced or rewritten."""
    try:
        st = path.stat()
    except FileNotFoundError:
        return ("missing", 0, 0, 0)
    except OSError:
        return ("error", 0, 0, 0)
    return ("ok", st.st_mtime_ns, st.st_size, st.st_ino)
