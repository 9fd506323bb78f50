"""Execution capability flags encoded in build-script file names."""

from __future__ import annotations

import logging
from enum import Flag, auto
from typing import Final


class ExecFlag(Flag):
    """Capabilities requested for one script execution."""

    NONE = 0
    INTERACTIVE = auto()
    FAKEROOT = auto()
    FAKECHROOT = auto()
    CHROOT = auto()
    DIRECT_EXEC = auto()
    IGNORE_EXIT = auto()
    SKIP = auto()

    @property
    def wants_chroot(self) -> bool:
        return bool(self & ExecFlag.CHROOT)


# chroot can only run without privileges under both fake layers.
FULL_CHROOT: Final[ExecFlag] = ExecFlag.CHROOT | ExecFlag.FAKEROOT | ExecFlag.FAKECHROOT

FLAG_LETTERS: Final[dict[str, ExecFlag]] = {
    "I": ExecFlag.INTERACTIVE,
    "R": ExecFlag.FAKEROOT,
    "F": ExecFlag.FAKECHROOT,
    "C": FULL_CHROOT,
    "E": ExecFlag.IGNORE_EXIT,
    "S": ExecFlag.SKIP,
}


def parse_flag_letters(letters: str, *, logger: logging.Logger | None = None) -> ExecFlag:
    """Map flag letters to an :class:`ExecFlag`; unknown letters are warned about."""

    log = logger or logging.getLogger(__name__)
    flags = ExecFlag.NONE
    for letter in letters:
        mapped = FLAG_LETTERS.get(letter)
        if mapped is None:
            log.warning("Ignoring unknown flag %r.", letter)
            continue
        flags |= mapped
    return flags


__all__ = ["FLAG_LETTERS", "FULL_CHROOT", "ExecFlag", "parse_flag_letters"]
