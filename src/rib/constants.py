"""Stable constants shared across rib subsystems."""

from __future__ import annotations

from typing import Final

# Schema version for ``rib.toml``.
CONFIG_SCHEMA_VERSION: Final[int] = 1

# Work-directory layout (relative to the work directory root).
PATHNAME_RIB: Final[str] = "._RIB_"
PATHNAME_BUILDD: Final[str] = "build.d"
PATHNAME_ROOTFS: Final[str] = "rootfs"
PATHNAME_BIN: Final[str] = "bin"
PATHNAME_DIST: Final[str] = "dist"
PATHNAME_FILES: Final[str] = "files"
PATHNAME_TMP: Final[str] = "tmp"
PATHNAME_LOG: Final[str] = "log"
PATHNAME_FAKEROOTSAVE: Final[str] = "fakeroot.save"

BUILD_LOG_FILENAME: Final[str] = "build.log"

# Child process environment contract.
SYSTEM_PATH: Final[str] = "/usr/sbin:/usr/bin:/sbin:/bin"
SBIN_PATHS: Final[tuple[str, ...]] = ("/sbin", "/usr/sbin")
EXEC_ENV_SENTINEL: Final[str] = "RIB_EXEC_ENV=1"

# Descriptor number under which a child sees the side-channel write end.
SIDE_CHANNEL_FD: Final[int] = 3

# Side-channel framing bytes.
RECORD_SEPARATOR: Final[bytes] = b"\x00"
UNIT_SEPARATOR: Final[bytes] = b"\x1f"

# Prefixes for per-request volatile directories.
VOLATILE_TEMP_PREFIX: Final[str] = ".volatile."
VOLATILE_EXEC_PREFIX: Final[str] = ".exec."
VOLATILE_BASHRC_PREFIX: Final[str] = ".volatile.bashrc."

__all__ = [
    "BUILD_LOG_FILENAME",
    "CONFIG_SCHEMA_VERSION",
    "EXEC_ENV_SENTINEL",
    "PATHNAME_BIN",
    "PATHNAME_BUILDD",
    "PATHNAME_DIST",
    "PATHNAME_FAKEROOTSAVE",
    "PATHNAME_FILES",
    "PATHNAME_LOG",
    "PATHNAME_RIB",
    "PATHNAME_ROOTFS",
    "PATHNAME_TMP",
    "RECORD_SEPARATOR",
    "SBIN_PATHS",
    "SIDE_CHANNEL_FD",
    "SYSTEM_PATH",
    "UNIT_SEPARATOR",
    "VOLATILE_BASHRC_PREFIX",
    "VOLATILE_EXEC_PREFIX",
    "VOLATILE_TEMP_PREFIX",
]
