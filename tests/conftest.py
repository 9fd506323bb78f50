"""
rib — shared test fixtures

File: tests/conftest.py

Purpose
- Provide fake ``chroot``/``fakeroot``/``fakechroot`` programs so wrapper
  layering can be exercised without privileges or the real tools.
- Provide a factory for executable build scripts and an isolated logger
  that keeps every record in memory.
"""

from __future__ import annotations

import logging
import stat
from collections.abc import Callable, Iterator
from pathlib import Path
from uuid import uuid4

import pytest

from rib.workspace.skeleton import make_skeleton

# Runs the staged copy below the new root when present, otherwise the host path.
FAKE_CHROOT = """#!/bin/sh
root="$1"
shift
cmd="$1"
shift
if [ -e "$root$cmd" ]; then
    exec "$root$cmd" "$@"
fi
exec "$cmd" "$@"
"""

# fakeroot and fakechroot: drop options up to ``--`` and run the rest.
FAKE_PASSTHROUGH = """#!/bin/sh
while [ "$#" -gt 0 ]; do
    if [ "$1" = "--" ]; then
        shift
        break
    fi
    shift
done
exec "$@"
"""

ScriptFactory = Callable[[Path, str], Path]


class ListHandler(logging.Handler):
    """Keep records in memory, synchronously."""

    def __init__(self) -> None:
        super().__init__(level=logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def messages(self, level: int | None = None) -> list[str]:
        return [
            record.getMessage()
            for record in self.records
            if level is None or record.levelno == level
        ]


def write_executable(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def script_factory() -> ScriptFactory:
    return write_executable


@pytest.fixture
def fake_bin(tmp_path: Path) -> Path:
    """Directory holding the fake wrapper programs."""

    directory = tmp_path / "fake-bin"
    write_executable(directory / "chroot", FAKE_CHROOT)
    write_executable(directory / "fakeroot", FAKE_PASSTHROUGH)
    write_executable(directory / "fakechroot", FAKE_PASSTHROUGH)
    return directory


@pytest.fixture
def fake_search_path(fake_bin: Path) -> str:
    return str(fake_bin)


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    """An initialized rib work directory."""

    root = tmp_path / "work"
    root.mkdir()
    make_skeleton(root)
    return root


@pytest.fixture
def captured_logger() -> Iterator[tuple[logging.Logger, ListHandler]]:
    logger = logging.getLogger(f"tests.rib.{uuid4().hex}")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    handler = ListHandler()
    logger.addHandler(handler)
    try:
        yield logger, handler
    finally:
        logger.removeHandler(handler)
