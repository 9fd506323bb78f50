"""Output rendering for the rib CLI.

File: src/rib/ui/render.py

Purpose
- Provide a thin rendering layer for command results printed to stdout.
- Honor ``--quiet``: nothing is printed when it is set.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from collections.abc import Sequence


class CLIRenderer:
    """Plain-text renderer; every method is a no-op in quiet mode."""

    def __init__(
        self,
        *,
        quiet: bool = False,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        self.quiet = quiet
        self._stdout = stdout
        self._stderr = stderr

    def text(self, line: str) -> None:
        self._write(self._stdout or sys.stdout, line)

    def kv(self, key: str, value: object) -> None:
        self.text(f"{key}: {value}")

    def section(self, title: str) -> None:
        self.text(f"\n{title}")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            self.text(f"  {prefix}{entry}")

    def table(self, headers: Sequence[str], rows: Sequence[Sequence[str]]) -> None:
        """Print a left-aligned table; nothing is printed for zero rows."""

        if not rows:
            return

        widths = [len(header) for header in headers]
        for row in rows:
            for index, cell in enumerate(row[: len(headers)]):
                widths[index] = max(widths[index], len(cell))

        def _pad(cells: Sequence[str]) -> str:
            return "  ".join(cell.ljust(widths[i]) for i, cell in enumerate(cells)).rstrip()

        self.text(f"  {_pad(list(headers))}")
        self.text(f"  {'  '.join('-' * width for width in widths)}")
        for row in rows:
            self.text(f"  {_pad(list(row))}")

    def error(self, message: str) -> None:
        self._write(self._stderr or sys.stderr, message)

    def _write(self, stream: TextIO, line: str) -> None:
        if self.quiet:
            return
        stream.write(line.rstrip("\n") + "\n")


def create_renderer(*, quiet: bool = False) -> CLIRenderer:
    return CLIRenderer(quiet=quiet)


__all__ = ["CLIRenderer", "create_renderer"]
