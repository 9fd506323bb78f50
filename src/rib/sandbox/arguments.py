"""Wrapper layering for chroot, fakeroot and fakechroot execution."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rib.constants import SBIN_PATHS
from rib.sandbox.errors import ConfigurationError, ExecutableNotFoundError
from rib.sandbox.flags import ExecFlag

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from rib.sandbox.request import ExecutionRequest


@dataclass(frozen=True, slots=True)
class WrapperPrograms:
    """Program names looked up on the search path for each wrapper layer."""

    chroot: str = "chroot"
    fakeroot: str = "fakeroot"
    fakechroot: str = "fakechroot"

    @classmethod
    def from_config(cls, section: Mapping[str, object] | None) -> WrapperPrograms:
        values = dict(section or {})
        defaults = cls()
        return cls(
            chroot=str(values.get("chroot", defaults.chroot)),
            fakeroot=str(values.get("fakeroot", defaults.fakeroot)),
            fakechroot=str(values.get("fakechroot", defaults.fakechroot)),
        )


def default_search_path(
    environ: Mapping[str, str] | None = None,
    extra_paths: Sequence[str] = SBIN_PATHS,
) -> str:
    """Host ``PATH`` with ``extra_paths`` appended where missing."""

    source = os.environ if environ is None else environ
    entries = [item for item in source.get("PATH", "").split(os.pathsep) if item]
    for extra in extra_paths:
        if extra not in entries:
            entries.append(extra)
    return os.pathsep.join(entries)


def resolve_executable(name: str, search_path: str | None = None) -> str:
    """Locate ``name`` on ``search_path`` or raise :class:`ExecutableNotFoundError`."""

    effective_path = search_path if search_path is not None else default_search_path()
    located = shutil.which(name, path=effective_path)
    if located is None:
        raise ExecutableNotFoundError(name)
    return located


def compose_arguments(
    request: ExecutionRequest,
    *,
    search_path: str | None = None,
    wrappers: WrapperPrograms | None = None,
) -> None:
    """
    Rewrite ``request.path``/``request.argv`` to run under the requested wrappers.

    Layers are applied innermost first: chroot, fakeroot, then fakechroot.
    fakechroot has to be the outermost process because it intercepts the C
    library calls that fakeroot and chroot themselves make.
    """

    programs = wrappers or WrapperPrograms()
    path = request.path
    argv = list(request.argv)

    if request.has(ExecFlag.CHROOT):
        if request.chroot_dir is None:
            raise ConfigurationError("chroot dir not defined")
        if path:
            argv = [path, *argv[1:]] if argv else [path]
        path = resolve_executable(programs.chroot, search_path)
        argv = [path, str(request.chroot_dir), *argv]

    if request.has(ExecFlag.FAKEROOT):
        path = resolve_executable(programs.fakeroot, search_path)
        if request.fakeroot_save_file is not None:
            save_file = str(request.fakeroot_save_file)
            argv = [path, "-s", save_file, "-i", save_file, "--", *argv]
        else:
            argv = [path, "--", *argv]

    if request.has(ExecFlag.FAKECHROOT):
        path = resolve_executable(programs.fakechroot, search_path)
        argv = [path, "--environment", "debootstrap", "--", *argv]

    request.path = path
    request.argv = argv


__all__ = [
    "WrapperPrograms",
    "compose_arguments",
    "default_search_path",
    "resolve_executable",
]
