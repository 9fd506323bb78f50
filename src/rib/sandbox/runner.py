"""
rib — build script execution

File: src/rib/sandbox/runner.py

Purpose
- Run one :class:`~rib.sandbox.request.ExecutionRequest` to completion under
  the wrappers it asks for, with its pipes drained concurrently.

Lifecycle
- CONFIGURED: request created, nothing allocated.
- RESOURCES_READY: volatile dirs allocated; chroot scripts staged in the
  exec dir unless the request is direct-exec.
- SPAWNED: environment and argv finalized, child started, parent copy of
  the side-channel write end closed.
- DRAINING: side-channel decoder plus, in captured mode, stdout/stderr
  collectors running on their own threads.
- EXITED: every consumer joined, then the child reaped.

Functional requirements
- Volatile directories are released on every exit path.
- A non-zero or signal exit is a :class:`ProcessExitError`, downgraded to a
  logged warning when the request carries ``IGNORE_EXIT``.
- The process is reaped only after all consumers reached end of stream so
  no buffered output or side-channel record is lost.
"""

from __future__ import annotations

import functools
import logging
import os
import subprocess
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from rib.constants import SIDE_CHANNEL_FD
from rib.sandbox.arguments import WrapperPrograms, compose_arguments
from rib.sandbox.environment import build_environment_entries, environment_mapping
from rib.sandbox.errors import ProcessExitError, ProcessStartError, ResourceAllocationError
from rib.sandbox.flags import ExecFlag
from rib.sandbox.side_channel import SideChannelDecoder
from rib.sandbox.streams import OutputCollector, StreamConsumer, join_all
from rib.sandbox.volatile import VolatileDirectories, volatile_directories
from rib.utils.fs import copy_file

if TYPE_CHECKING:
    from collections.abc import Mapping

    from rib.sandbox.env_store import PersistentEnvironmentStore
    from rib.sandbox.request import ExecutionRequest


class RunnerState(str, Enum):
    CONFIGURED = "configured"
    RESOURCES_READY = "resources_ready"
    SPAWNED = "spawned"
    DRAINING = "draining"
    EXITED = "exited"


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Outcome of one request that did not abort the build."""

    name: str
    command: tuple[str, ...]
    returncode: int | None
    duration_ms: float
    ignored_error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.ignored_error is None and self.returncode == 0


class ProcessRunner:
    """Spawn and supervise a single build script."""

    def __init__(
        self,
        request: ExecutionRequest,
        store: PersistentEnvironmentStore,
        *,
        logger: logging.Logger | None = None,
        search_path: str | None = None,
        wrappers: WrapperPrograms | None = None,
    ) -> None:
        self._request = request
        self._store = store
        self._logger = logger or logging.getLogger(__name__)
        self._search_path = search_path
        self._wrappers = wrappers or WrapperPrograms()
        self._state = RunnerState.CONFIGURED
        self._consumed = False

    @property
    def state(self) -> RunnerState:
        return self._state

    @property
    def request(self) -> ExecutionRequest:
        return self._request

    def run(self) -> ExecutionResult:
        """Execute the request once; raise :class:`SandboxError` on fatal failure."""

        if self._consumed:
            raise RuntimeError("an execution request can only be run once")
        self._consumed = True

        request = self._request
        started = time.perf_counter()
        try:
            returncode = self._execute()
        except ProcessExitError as exc:
            if not request.has(ExecFlag.IGNORE_EXIT):
                raise
            self._logger.warning("Ignoring '%s' error: %s", request.name, exc)
            return ExecutionResult(
                name=request.name,
                command=tuple(request.argv),
                returncode=exc.returncode,
                duration_ms=_elapsed_ms(started),
                ignored_error=str(exc),
            )

        return ExecutionResult(
            name=request.name,
            command=tuple(request.argv),
            returncode=returncode,
            duration_ms=_elapsed_ms(started),
        )

    def _execute(self) -> int:
        request = self._request
        with volatile_directories(
            request.work_dir, chroot=request.flags.wants_chroot, logger=self._logger
        ) as directories:
            request.volatile = directories
            if request.flags.wants_chroot and not request.has(ExecFlag.DIRECT_EXEC):
                self._stage_binary(directories)
            self._state = RunnerState.RESOURCES_READY

            environment = environment_mapping(build_environment_entries(request, self._store))
            compose_arguments(request, search_path=self._search_path, wrappers=self._wrappers)
            return self._spawn_and_supervise(environment)

    def _stage_binary(self, directories: VolatileDirectories) -> None:
        request = self._request
        exec_dir = directories.exec_dir
        if exec_dir is None:
            raise ResourceAllocationError("chroot request without an exec dir")

        self._logger.debug("Copying '%s' to '%s'.", request.path, exec_dir)
        try:
            copy_file(exec_dir, request.path)
        except OSError as exc:
            self._logger.error("Unable to stage '%s': %s", request.path, exc)
            raise ResourceAllocationError(
                f"cannot stage '{request.path}' for chroot: {exc}"
            ) from exc

        request.path = str(PurePosixPath("/") / exec_dir.name / Path(request.path).name)

    def _spawn_and_supervise(self, environment: Mapping[str, str]) -> int:
        request = self._request
        interactive = request.has(ExecFlag.INTERACTIVE)

        # Created before Popen so descriptor 3 is already taken in this
        # process and none of Popen's own pipes can land on it.
        read_fd, write_fd = os.pipe()
        side_channel = os.fdopen(read_fd, "rb")
        consumers: list[StreamConsumer] = []
        try:
            self._logger.info("Executing command: %s", request.display_command)
            try:
                process = subprocess.Popen(
                    request.argv,
                    executable=request.path,
                    env=dict(environment),
                    stdin=None if interactive else subprocess.DEVNULL,
                    stdout=None if interactive else subprocess.PIPE,
                    stderr=None if interactive else subprocess.PIPE,
                    # Closing runs after preexec_fn, so only stdio and descriptor 3
                    # reach the script.
                    close_fds=True,
                    pass_fds=(SIDE_CHANNEL_FD,),
                    preexec_fn=functools.partial(_attach_side_channel, write_fd),
                )
            except (OSError, subprocess.SubprocessError) as exc:
                self._logger.error("Unable to start '%s': %s", request.path, exc)
                raise ProcessStartError(f"cannot start '{request.path}': {exc}") from exc
            finally:
                # Leaving this copy open would keep the decoder blocked past
                # the child's exit.
                os.close(write_fd)
            self._state = RunnerState.SPAWNED

            consumers.append(SideChannelDecoder(side_channel, self._store, logger=self._logger))
            if not interactive:
                assert process.stdout is not None and process.stderr is not None
                consumers.append(OutputCollector(process.stdout, "stdout", logger=self._logger))
                consumers.append(OutputCollector(process.stderr, "stderr", logger=self._logger))

            for consumer in consumers:
                consumer.start()
            self._state = RunnerState.DRAINING

            join_all(consumers)
            returncode = process.wait()
            for stream in (process.stdout, process.stderr):
                if stream is not None:
                    stream.close()
            self._state = RunnerState.EXITED
        finally:
            side_channel.close()

        for consumer in consumers:
            if consumer.error is not None:
                raise consumer.error

        if returncode != 0:
            raise ProcessExitError(request.argv, returncode)
        return returncode


def _attach_side_channel(write_fd: int) -> None:
    """Expose the side-channel write end as descriptor 3 in the child."""

    if write_fd == SIDE_CHANNEL_FD:
        os.set_inheritable(write_fd, True)
        return
    os.dup2(write_fd, SIDE_CHANNEL_FD, inheritable=True)
    os.close(write_fd)


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


__all__ = ["ExecutionResult", "ProcessRunner", "RunnerState"]
