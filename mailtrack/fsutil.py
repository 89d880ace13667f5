"""Filesystem helpers for owner-only, crash-safe writes."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

PRIVATE_DIR_MODE = 0o700
PRIVATE_FILE_MODE = 0o600


def ensure_private_dir(path: Path) -> Path:
    """Create ``path`` (and parents) with owner-only permissions."""
    path.mkdir(parents=True, exist_ok=True, mode=PRIVATE_DIR_MODE)
    return path


def atomic_write(path: Path, data: bytes, *, mode: int = PRIVATE_FILE_MODE) -> Path:
    """Atomically write ``data`` to ``path``.

    The bytes land in a temp file in the same directory which is then
    renamed over the target, so readers see either the old or the new
    content and never a partial write.
    """
    ensure_private_dir(path.parent)
    fd, tmp = tempfile.mkstemp(
        dir=path.parent,
        prefix=f".{path.name}-",
        suffix=".tmp",
    )
    try:
        os.write(fd, data)
        if hasattr(os, "fchmod"):  # not available on Windows
            os.fchmod(fd, mode)
        os.close(fd)
        os.replace(tmp, path)
    except Exception:
        try:
            os.close(fd)
        except OSError:
            pass
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise
    return path
