"""Error taxonomy for script execution under sandbox wrappers."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class SandboxError(RuntimeError):
    """Base error for a failed script execution request."""


class ConfigurationError(SandboxError):
    """Raised when a request asks for chroot without a chroot root."""


class ExecutableNotFoundError(SandboxError):
    """Raised when a wrapper program is absent from the search path."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"executable {name!r} not found in search path")


class ResourceAllocationError(SandboxError):
    """Raised when a volatile directory cannot be created."""


class PathResolutionError(SandboxError):
    """Raised when the volatile temp dir cannot be expressed inside the chroot."""


class ProcessStartError(SandboxError):
    """Raised when the composed command cannot be started."""


class ProcessExitError(SandboxError):
    """Raised when a command exits non-zero or is killed by a signal."""

    def __init__(self, command: Sequence[str], returncode: int) -> None:
        self.command = tuple(command)
        self.returncode = returncode
        program = self.command[0] if self.command else "<unknown>"
        if returncode < 0:
            detail = f"killed by signal {-returncode}"
        else:
            detail = f"exit status {returncode}"
        super().__init__(f"{program}: {detail}")


class DecodeError(SandboxError):
    """Raised when the side channel carries a malformed record."""

    def __init__(self, record: bytes) -> None:
        self.record = record
        super().__init__(
            f"malformed side-channel record {record!r}: expected category, key and value"
        )


__all__ = [
    "ConfigurationError",
    "DecodeError",
    "ExecutableNotFoundError",
    "PathResolutionError",
    "ProcessExitError",
    "ProcessStartError",
    "ResourceAllocationError",
    "SandboxError",
]
