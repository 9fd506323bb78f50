"""
rib — work-directory skeleton

File: src/rib/workspace/skeleton.py

Purpose
- Describe the fixed directory layout of a rib work directory and create it
  idempotently.

Functional requirements
- Every entry that declares an environment variable is exported to
  non-chroot build scripts as the entry's absolute path.
- The marker file identifies an initialized work directory.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Final

from rib.constants import (
    PATHNAME_BIN,
    PATHNAME_BUILDD,
    PATHNAME_DIST,
    PATHNAME_FAKEROOTSAVE,
    PATHNAME_FILES,
    PATHNAME_LOG,
    PATHNAME_RIB,
    PATHNAME_ROOTFS,
    PATHNAME_TMP,
)
from rib.utils.fs import ensure_dir, ensure_file


class EntryKind(str, Enum):
    FILE = "file"
    DIR = "dir"


@dataclass(frozen=True, slots=True)
class SkeletonEntry:
    """One path of the work-directory layout."""

    pathname: str
    kind: EntryKind
    envvar: str | None = None


DIR_SKELETON: Final[tuple[SkeletonEntry, ...]] = (
    SkeletonEntry(PATHNAME_RIB, EntryKind.FILE),
    SkeletonEntry(PATHNAME_BUILDD, EntryKind.DIR, "RIB_DIR_BUILDD"),
    SkeletonEntry(PATHNAME_ROOTFS, EntryKind.DIR, "RIB_DIR_ROOTFS"),
    SkeletonEntry(PATHNAME_BIN, EntryKind.DIR, "RIB_DIR_BIN"),
    SkeletonEntry(PATHNAME_DIST, EntryKind.DIR, "RIB_DIR_DIST"),
    SkeletonEntry(PATHNAME_FILES, EntryKind.DIR, "RIB_DIR_FILES"),
    SkeletonEntry(PATHNAME_TMP, EntryKind.DIR, "RIB_DIR_TEMP"),
    SkeletonEntry(PATHNAME_LOG, EntryKind.DIR, "RIB_DIR_LOG"),
    SkeletonEntry(PATHNAME_FAKEROOTSAVE, EntryKind.FILE),
)

DEFAULT_CLEAN_TARGETS: Final[tuple[str, ...]] = (
    PATHNAME_ROOTFS,
    PATHNAME_TMP,
    PATHNAME_FAKEROOTSAVE,
)
FULL_CLEAN_TARGETS: Final[tuple[str, ...]] = (
    *DEFAULT_CLEAN_TARGETS,
    PATHNAME_DIST,
    PATHNAME_LOG,
)


def is_rib_dir(root: Path | str) -> bool:
    """Return ``True`` when ``root`` holds the rib marker file."""

    marker = Path(root) / PATHNAME_RIB
    return marker.exists() and not marker.is_dir()


def make_skeleton(root: Path | str) -> None:
    """Ensure every skeleton entry exists under ``root``."""

    base = Path(root)
    for entry in DIR_SKELETON:
        target = base / entry.pathname
        if entry.kind is EntryKind.FILE:
            ensure_file(target)
        else:
            ensure_dir(target)


def skeleton_environment(root: Path | str) -> dict[str, str]:
    """Return ``{envvar: absolute path}`` for entries that declare a variable."""

    base = Path(root)
    return {
        entry.envvar: str(base / entry.pathname)
        for entry in DIR_SKELETON
        if entry.envvar is not None
    }


def clean_targets(*, all_targets: bool = False) -> tuple[str, ...]:
    return FULL_CLEAN_TARGETS if all_targets else DEFAULT_CLEAN_TARGETS


__all__ = [
    "DEFAULT_CLEAN_TARGETS",
    "DIR_SKELETON",
    "EntryKind",
    "FULL_CLEAN_TARGETS",
    "SkeletonEntry",
    "clean_targets",
    "is_rib_dir",
    "make_skeleton",
    "skeleton_environment",
]
