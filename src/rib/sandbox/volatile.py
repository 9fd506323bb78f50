"""Per-request volatile directories with guaranteed release."""

from __future__ import annotations

import logging
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from rib.constants import (
    PATHNAME_ROOTFS,
    PATHNAME_TMP,
    VOLATILE_EXEC_PREFIX,
    VOLATILE_TEMP_PREFIX,
)
from rib.sandbox.errors import ResourceAllocationError

if TYPE_CHECKING:
    from collections.abc import Iterator


@dataclass(frozen=True, slots=True)
class VolatileDirectories:
    """Scratch directory and, for chroot requests, the binary staging directory."""

    temp_dir: Path
    exec_dir: Path | None = None

    def paths(self) -> tuple[Path, ...]:
        if self.exec_dir is None:
            return (self.temp_dir,)
        return (self.temp_dir, self.exec_dir)


def volatile_base_dir(work_dir: Path, *, chroot: bool) -> Path:
    """Directory under which volatile dirs are created for a request."""

    # Inside rootfs the directories stay reachable once chrooted.
    return work_dir / (PATHNAME_ROOTFS if chroot else PATHNAME_TMP)


def allocate_volatile_directories(
    work_dir: Path,
    *,
    chroot: bool,
    logger: logging.Logger | None = None,
) -> VolatileDirectories:
    """Create the volatile directories for one request."""

    log = logger or logging.getLogger(__name__)
    base_dir = volatile_base_dir(work_dir, chroot=chroot)

    try:
        temp_dir = Path(tempfile.mkdtemp(prefix=VOLATILE_TEMP_PREFIX, dir=base_dir))
    except OSError as exc:
        log.error("Unable to create volatile temp dir in '%s': %s", base_dir, exc)
        raise ResourceAllocationError(f"cannot create volatile temp dir: {exc}") from exc

    if not chroot:
        return VolatileDirectories(temp_dir=temp_dir)

    try:
        exec_dir = Path(tempfile.mkdtemp(prefix=VOLATILE_EXEC_PREFIX, dir=base_dir))
    except OSError as exc:
        log.error("Unable to create volatile exec dir in '%s': %s", base_dir, exc)
        release_volatile_directories(VolatileDirectories(temp_dir=temp_dir), logger=log)
        raise ResourceAllocationError(f"cannot create volatile exec dir: {exc}") from exc

    return VolatileDirectories(temp_dir=temp_dir, exec_dir=exec_dir)


def release_volatile_directories(
    directories: VolatileDirectories,
    *,
    logger: logging.Logger | None = None,
) -> None:
    """Remove the volatile directories recursively; missing ones are ignored."""

    log = logger or logging.getLogger(__name__)
    for path in directories.paths():
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            continue
        except OSError as exc:
            log.warning("Unable to remove volatile dir '%s': %s", path, exc)


@contextmanager
def volatile_directories(
    work_dir: Path,
    *,
    chroot: bool,
    logger: logging.Logger | None = None,
) -> Iterator[VolatileDirectories]:
    """Yield freshly allocated volatile directories and release them on exit."""

    directories = allocate_volatile_directories(work_dir, chroot=chroot, logger=logger)
    try:
        yield directories
    finally:
        release_volatile_directories(directories, logger=logger)


__all__ = [
    "VolatileDirectories",
    "allocate_volatile_directories",
    "release_volatile_directories",
    "volatile_base_dir",
    "volatile_directories",
]
