"""Discovery of build scripts and their filename-encoded metadata."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from rib.sandbox.flags import ExecFlag, parse_flag_letters
from rib.sandbox.request import ExecutionRequest

SCRIPT_NAME_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(\d+)-([A-Z]*)-", re.ASCII)


@dataclass(frozen=True, slots=True)
class ScriptName:
    """Sequence number and flag letters parsed from a build-script file name."""

    sequence: int
    letters: str


def parse_script_name(filename: str) -> ScriptName | None:
    """Parse ``filename``; return ``None`` when it does not follow the grammar."""

    match = SCRIPT_NAME_PATTERN.match(filename)
    if match is None:
        return None
    return ScriptName(sequence=int(match.group(1), 10), letters=match.group(2))


def select_scripts(
    directory: Path | str,
    seqmin: int = 0,
    *,
    work_dir: Path | None = None,
    logger: logging.Logger | None = None,
) -> list[ExecutionRequest]:
    """
    Return execution requests for the build scripts in ``directory``.

    ``work_dir`` defaults to the parent of ``directory``. Entries follow the
    lexical order of the directory listing, not the parsed sequence number,
    so numeric order holds only for zero-padded names.
    """

    log = logger or logging.getLogger(__name__)
    base = Path(directory)
    root = work_dir if work_dir is not None else base.parent
    requests: list[ExecutionRequest] = []

    for filename in sorted(os.listdir(base)):
        parsed = parse_script_name(filename)
        if parsed is None:
            log.warning("Skipping file '%s': regex mismatch", filename)
            continue

        if parsed.sequence < seqmin:
            log.warning(
                "Skipping file '%s': seqno=%d < seqmin=%d", filename, parsed.sequence, seqmin
            )
            continue

        flags = parse_flag_letters(parsed.letters, logger=log)
        if flags & ExecFlag.SKIP:
            continue

        path = str(base / filename)
        log.debug("Registering build command: %s", path)
        requests.append(
            ExecutionRequest(
                path=path,
                argv=[path],
                flags=flags,
                work_dir=root,
                sequence=parsed.sequence,
            )
        )

    return requests


__all__ = ["SCRIPT_NAME_PATTERN", "ScriptName", "parse_script_name", "select_scripts"]
