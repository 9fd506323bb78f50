"""
rib — build command controller

File: src/rib/control_plane/controller.py

Purpose
- Implement the ``init``, ``build``, ``shell`` and ``clean`` commands on top
  of a work directory.

Functional requirements
- ``build`` runs the selected scripts one at a time in sequence order and
  stops at the first failure that the script's flags do not downgrade.
- Every script of one build shares a single persistent environment store;
  a new build starts from an empty one.
- The build log under ``log/`` receives every record emitted while a build
  runs, in addition to the sinks configured at startup.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
import time
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

from rib.config.schema import default_config
from rib.constants import (
    PATHNAME_FAKEROOTSAVE,
    PATHNAME_LOG,
    PATHNAME_ROOTFS,
    VOLATILE_BASHRC_PREFIX,
)
from rib.observability.logging import (
    LoggingHandle,
    build_formatter,
    get_active_logging_handle,
)
from rib.sandbox.arguments import WrapperPrograms, default_search_path
from rib.sandbox.env_store import PersistentEnvironmentStore
from rib.sandbox.errors import SandboxError
from rib.sandbox.flags import FULL_CHROOT, ExecFlag
from rib.sandbox.request import ExecutionRequest
from rib.sandbox.runner import ExecutionResult, ProcessRunner
from rib.sandbox.selector import select_scripts
from rib.utils.fs import ensure_dir, is_empty, real_path
from rib.workspace.skeleton import clean_targets, is_rib_dir, make_skeleton

SHELL_PROGRAM: Final[str] = "/bin/bash"
SHELL_RC_LINES: Final[tuple[str, ...]] = (
    "alias ls='ls --color=auto'",
    'HISTFILE=""',
    "PS1='\\u@[rib]:\\w\\$ '",
)


class WorkDirError(RuntimeError):
    """Raised when the work directory is missing, uninitialized or not usable."""


class BuildError(RuntimeError):
    """Raised when a build stops before every selected script ran."""

    def __init__(self, message: str, *, script: str | None = None) -> None:
        self.script = script
        super().__init__(message)


@dataclass(frozen=True, slots=True)
class BuildReport:
    """Summary of a completed build."""

    work_dir: Path
    results: tuple[ExecutionResult, ...]
    duration_ms: float
    environment: Mapping[str, str] = field(default_factory=dict)

    @property
    def executed(self) -> tuple[str, ...]:
        return tuple(result.name for result in self.results)

    @property
    def ignored_failures(self) -> tuple[str, ...]:
        return tuple(result.name for result in self.results if result.ignored_error is not None)


class BuildController:
    """Run rib commands against one work directory."""

    def __init__(
        self,
        work_dir: str | Path,
        *,
        config: Mapping[str, Any] | None = None,
        logger: logging.Logger | None = None,
        logging_handle: LoggingHandle | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._work_dir = Path(work_dir)
        self._config: Mapping[str, Any] = config if config is not None else default_config()
        self._logger = logger or logging.getLogger("rib")
        self._logging_handle = logging_handle

        wrappers_section = self._config["wrappers"]
        self._wrappers = WrapperPrograms.from_config(wrappers_section)
        self._search_path = default_search_path(
            environ, extra_paths=tuple(wrappers_section["extra_search_paths"])
        )

    @property
    def work_dir(self) -> Path:
        return self._work_dir

    def init(self) -> Path:
        """Create an empty work directory skeleton."""

        try:
            ensure_dir(self._work_dir)
        except OSError as exc:
            self._logger.error("Unable to create '%s': %s", self._work_dir, exc)
            raise WorkDirError(f"cannot create '{self._work_dir}': {exc}") from exc

        if is_rib_dir(self._work_dir):
            self._logger.error("Directory '%s' already initialized.", self._work_dir)
            raise WorkDirError("already initialized")

        if not is_empty(self._work_dir):
            self._logger.error("Directory '%s' is not empty.", self._work_dir)
            raise WorkDirError("not empty")

        make_skeleton(self._work_dir)
        return self._work_dir

    def build(self, seqmin: int | None = None) -> BuildReport:
        """Run every selected build script; raise :class:`BuildError` on failure."""

        work_dir = self._checked_work_dir()
        make_skeleton(work_dir)
        if seqmin is None:
            seqmin = int(self._config["build"]["seqmin"])

        build_section = self._config["build"]
        scripts_dir = work_dir / build_section["scripts_dir"]
        log_path = work_dir / PATHNAME_LOG / self._config["logging"]["log_file"]

        with self._build_log(log_path):
            store = PersistentEnvironmentStore()
            started = time.perf_counter()

            try:
                requests = select_scripts(
                    scripts_dir, seqmin, work_dir=work_dir, logger=self._logger
                )
            except OSError as exc:
                self._logger.error("Unable to read '%s': %s", scripts_dir, exc)
                raise BuildError(f"cannot read build scripts: {exc}") from exc

            if not requests:
                self._logger.warning("No build scripts found in '%s'.", scripts_dir)
                return BuildReport(work_dir=work_dir, results=(), duration_ms=0.0)

            results: list[ExecutionResult] = []
            for request in requests:
                self._bind(request, work_dir)
                runner = ProcessRunner(
                    request,
                    store,
                    logger=self._logger,
                    search_path=self._search_path,
                    wrappers=self._wrappers,
                )
                try:
                    results.append(runner.run())
                except SandboxError as exc:
                    self._logger.error("Command failed: %s", exc)
                    raise BuildError(str(exc), script=request.name) from exc

            duration_ms = (time.perf_counter() - started) * 1000.0
            self._logger.info("Build duration: %.3fs", duration_ms / 1000.0)

        return BuildReport(
            work_dir=work_dir,
            results=tuple(results),
            duration_ms=duration_ms,
            environment=store.snapshot(),
        )

    def shell(self, args: Sequence[str] = ()) -> ExecutionResult | None:
        """
        Run ``args`` (or an interactive bash) inside the root filesystem.

        Failures of the command are logged and never raised; only an unusable
        work directory is an error.
        """

        work_dir = self._checked_work_dir()
        rootfs = work_dir / PATHNAME_ROOTFS

        with contextlib.ExitStack() as stack:
            if args:
                path, argv = args[0], list(args)
            else:
                try:
                    rc_path = stack.enter_context(_shell_rc_file(rootfs))
                except OSError as exc:
                    self._logger.error("Unable to write bashrc in '%s': %s", rootfs, exc)
                    raise WorkDirError(f"cannot write bashrc: {exc}") from exc
                rc_in_chroot = "/" + rc_path.relative_to(rootfs).as_posix()
                self._logger.info("bashrc path: %s", rc_in_chroot)
                path, argv = SHELL_PROGRAM, ["bash", "--rcfile", rc_in_chroot, "-i"]

            request = ExecutionRequest(
                path=path,
                argv=argv,
                flags=FULL_CHROOT | ExecFlag.INTERACTIVE | ExecFlag.DIRECT_EXEC,
                work_dir=work_dir,
            )
            self._bind(request, work_dir)
            runner = ProcessRunner(
                request,
                PersistentEnvironmentStore(),
                logger=self._logger,
                search_path=self._search_path,
                wrappers=self._wrappers,
            )
            try:
                return runner.run()
            except SandboxError as exc:
                self._logger.info("Shell command failed: %s", exc)
                return None

    def clean(self, *, all_targets: bool = False) -> tuple[Path, ...]:
        """Remove generated content and restore the skeleton."""

        work_dir = self._checked_work_dir()
        removed: list[Path] = []
        for target in clean_targets(all_targets=all_targets):
            pathname = work_dir / target
            self._logger.debug("Removing '%s'.", pathname)
            try:
                _remove_all(pathname)
            except OSError as exc:
                self._logger.error("Unable to remove '%s': %s", pathname, exc)
                raise WorkDirError(f"cannot remove '{pathname}': {exc}") from exc
            removed.append(pathname)

        make_skeleton(work_dir)
        return tuple(removed)

    def _checked_work_dir(self) -> Path:
        try:
            work_dir = real_path(self._work_dir)
        except OSError as exc:
            self._logger.error("Unable to resolve '%s': %s", self._work_dir, exc)
            raise WorkDirError(f"invalid directory '{self._work_dir}': {exc}") from exc

        if not is_rib_dir(work_dir):
            self._logger.error("Directory '%s' not initialized.", work_dir)
            raise WorkDirError(f"directory '{work_dir}' not initialized")
        return work_dir

    @staticmethod
    def _bind(request: ExecutionRequest, work_dir: Path) -> None:
        request.work_dir = work_dir
        request.chroot_dir = work_dir / PATHNAME_ROOTFS
        request.fakeroot_save_file = work_dir / PATHNAME_FAKEROOTSAVE

    @contextlib.contextmanager
    def _build_log(self, path: Path) -> Iterator[None]:
        handle = self._logging_handle or get_active_logging_handle()
        if handle is not None and handle.logger is self._logger:
            sink = handle.add_sink(path)
            try:
                yield
            finally:
                handle.remove_sink(sink)
            return

        # Logging was not set up through rib.observability; write directly.
        path.touch(mode=0o600, exist_ok=True)
        handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        handler.setFormatter(build_formatter(self._config["logging"]["format"]))
        self._logger.addHandler(handler)
        try:
            yield
        finally:
            self._logger.removeHandler(handler)
            handler.close()


@contextlib.contextmanager
def _shell_rc_file(rootfs: Path) -> Iterator[Path]:
    fd, name = tempfile.mkstemp(prefix=VOLATILE_BASHRC_PREFIX, dir=rootfs)
    path = Path(name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write("\n".join(SHELL_RC_LINES) + "\n")
        yield path
    finally:
        path.unlink(missing_ok=True)


def _remove_all(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink(missing_ok=True)


__all__ = [
    "BuildController",
    "BuildError",
    "BuildReport",
    "SHELL_PROGRAM",
    "SHELL_RC_LINES",
    "WorkDirError",
]
