"""Executable CLI entrypoint for ``rib``."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING, Final

from rib.config.loader import ConfigLoadError
from rib.config.schema import ConfigValidationError
from rib.control_plane.controller import BuildError, WorkDirError
from rib.sandbox.errors import SandboxError

if TYPE_CHECKING:
    from collections.abc import Sequence


class ExitCode(IntEnum):
    """Process exit-code contract."""

    SUCCESS = 0
    BUILD_FAILED = 1
    CONFIG_ERROR = 2
    INTERNAL_ERROR = 4


# Checked in order against an error and then against each error it was raised from.
_EXIT_CODES: Final[tuple[tuple[tuple[type[BaseException], ...], ExitCode], ...]] = (
    ((ConfigLoadError, ConfigValidationError), ExitCode.CONFIG_ERROR),
    ((BuildError, WorkDirError, SandboxError), ExitCode.BUILD_FAILED),
)


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Entrypoint used by ``python -m rib`` and the console script."""

    try:
        from rib.ui.cli import run_cli

        return int(run_cli(argv))
    except SystemExit as exc:
        # argparse exits here for --help and usage errors.
        return _exit_status(exc.code)
    except KeyboardInterrupt:
        _write_stderr("interrupted")
        return int(ExitCode.BUILD_FAILED)
    except Exception as exc:  # noqa: BLE001 - CLI boundary normalization.
        exit_code = exit_code_for(exc)
        if exit_code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
        else:
            _write_stderr(str(exc).strip() or exc.__class__.__name__)
        return int(exit_code)


def exit_code_for(exc: BaseException) -> ExitCode:
    """Exit code for an uncaught error, following its ``raise ... from`` chain."""

    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        for error_types, exit_code in _EXIT_CODES:
            if isinstance(current, error_types):
                return exit_code
        current = current.__cause__
    return ExitCode.INTERNAL_ERROR


def _exit_status(code: object) -> int:
    if code is None:
        return int(ExitCode.SUCCESS)
    if isinstance(code, int):
        return code
    _write_stderr(str(code))
    return int(ExitCode.BUILD_FAILED)


def _write_stderr(message: str) -> None:
    sys.stderr.write(message.rstrip("\n") + "\n")


__all__ = ["ExitCode", "cli_entrypoint", "exit_code_for"]
