"""Child process environment for a build script."""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from rib.constants import EXEC_ENV_SENTINEL, PATHNAME_BIN, SYSTEM_PATH
from rib.sandbox.errors import ConfigurationError, PathResolutionError
from rib.workspace.skeleton import skeleton_environment

if TYPE_CHECKING:
    from collections.abc import Iterable

    from rib.sandbox.env_store import PersistentEnvironmentStore
    from rib.sandbox.request import ExecutionRequest


def build_environment_entries(
    request: ExecutionRequest,
    store: PersistentEnvironmentStore,
) -> list[str]:
    """
    Return the ``NAME=value`` entries for ``request``.

    Built-in variables come first, then every persistent variable, then
    ``RIB_EXEC_ENV=1``. A name may appear more than once; the last
    occurrence is the one the child sees.
    """

    if request.volatile is None:
        raise ConfigurationError("volatile directories must be allocated before the environment")

    temp_dir = request.volatile.temp_dir
    builtins: dict[str, str] = {}
    if request.flags.wants_chroot:
        if request.chroot_dir is None:
            raise ConfigurationError("chroot dir not defined")
        builtins["PATH"] = SYSTEM_PATH
        builtins["VTEMP"] = chroot_relative_path(temp_dir, request.chroot_dir)
    else:
        builtins["PATH"] = f"{request.work_dir / PATHNAME_BIN}:{SYSTEM_PATH}"
        builtins["VTEMP"] = str(temp_dir)
        builtins.update(skeleton_environment(request.work_dir))

    entries = [f"{name}={value}" for name, value in builtins.items()]
    entries.extend(f"{name}={value}" for name, value in store.items())
    entries.append(EXEC_ENV_SENTINEL)
    return entries


def environment_mapping(entries: Iterable[str]) -> dict[str, str]:
    """Fold ``NAME=value`` entries into a mapping, last occurrence winning."""

    mapping: dict[str, str] = {}
    for entry in entries:
        name, sep, value = entry.partition("=")
        if not sep or not name:
            continue
        mapping.pop(name, None)
        mapping[name] = value
    return mapping


def chroot_relative_path(path: Path, chroot_dir: Path) -> str:
    """Express ``path`` as an absolute path as seen from inside ``chroot_dir``."""

    relative = os.path.relpath(path, chroot_dir)
    if relative == os.pardir or relative.startswith(os.pardir + os.sep):
        raise PathResolutionError(f"'{path}' is not inside chroot dir '{chroot_dir}'")
    return str(PurePosixPath("/") / relative) if relative != os.curdir else "/"


__all__ = ["build_environment_entries", "chroot_relative_path", "environment_mapping"]
