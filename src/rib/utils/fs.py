"""
rib — filesystem utilities

File: src/rib/utils/fs.py

Purpose
- Provide idempotent filesystem helpers used by the work-directory skeleton
  and the script runner.

Functional requirements
- ``ensure_file``/``ensure_dir`` succeed when the target already exists with
  the right type and fail with POSIX-style errors otherwise.
- ``copy_file`` is a native copy that keeps permission bits and timestamps.

Non-functional requirements
- Standard library only.
"""

from __future__ import annotations

import os
import shutil
import stat
from pathlib import Path

PathLike = str | os.PathLike[str]

__all__ = [
    "copy_file",
    "ensure_dir",
    "ensure_file",
    "is_empty",
    "real_path",
]

_DIR_MODE = 0o755


def ensure_file(path: PathLike) -> Path:
    """Create an empty regular file at ``path`` unless one already exists."""

    target = Path(path)
    try:
        info = target.stat()
    except FileNotFoundError:
        target.touch(exist_ok=False)
        return target

    if stat.S_ISDIR(info.st_mode):
        raise IsADirectoryError(f"{target!s} is a directory")
    return target


def ensure_dir(path: PathLike) -> Path:
    """Create ``path`` and any missing parents; fail if it is not a directory."""

    target = Path(path)
    if not target.exists():
        target.mkdir(mode=_DIR_MODE, parents=True, exist_ok=True)

    if not target.is_dir():
        raise NotADirectoryError(f"{target!s} is not a directory")
    return target


def is_empty(path: PathLike) -> bool:
    """
    Return ``True`` for an empty directory or a zero-length file.

    Raises ``FileNotFoundError`` when ``path`` does not exist.
    """

    target = Path(path)
    info = target.stat()
    if not target.is_dir():
        return info.st_size == 0

    with os.scandir(target) as entries:
        for _ in entries:
            return False
    return True


def copy_file(dst: PathLike, src: PathLike) -> Path:
    """
    Copy ``src`` to ``dst`` keeping permission bits and timestamps.

    ``dst`` may name an existing directory, in which case the file keeps its
    base name inside it. Returns the destination file path.
    """

    source = Path(src)
    if source.is_dir():
        raise IsADirectoryError(f"{source!s} is a directory")
    copied = shutil.copy2(source, Path(dst))
    return Path(copied)


def real_path(path: PathLike) -> Path:
    """Return the canonical absolute path of an existing directory."""

    resolved = Path(path).expanduser().resolve(strict=True)
    if not resolved.is_dir():
        raise NotADirectoryError(f"{resolved!s} is not a directory")
    return resolved
