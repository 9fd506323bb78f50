"""Execution request model consumed by :class:`~rib.sandbox.runner.ProcessRunner`."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from rib.sandbox.flags import ExecFlag
from rib.sandbox.volatile import VolatileDirectories


@dataclass(slots=True)
class ExecutionRequest:
    """
    One command to run inside the build environment.

    ``path`` and ``argv`` are rewritten in place while the request is
    prepared for spawning (binary staging and wrapper composition); nothing
    else mutates a request after creation except the attachment of its
    volatile directories. ``name`` keeps the base name of the path given at creation.
    """

    path: str
    argv: list[str]
    flags: ExecFlag
    work_dir: Path
    chroot_dir: Path | None = None
    fakeroot_save_file: Path | None = None
    sequence: int | None = None
    name: str = ""
    volatile: VolatileDirectories | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if not self.name:
            self.name = Path(self.path).name

    def has(self, flag: ExecFlag) -> bool:
        return bool(self.flags & flag)

    @property
    def display_command(self) -> str:
        return " ".join([self.path, *self.argv[1:]])


__all__ = ["ExecutionRequest"]
