"""
rib — side-channel protocol

File: src/rib/sandbox/side_channel.py

Purpose
- Decode the records a build script writes to descriptor 3 and apply them
  to the persistent environment store.

Wire format
- ``record := category 0x1F key 0x1F value 0x00``
- A final record without the trailing NUL is accepted at end of stream.
- ``setenv`` inserts or overwrites ``key``; ``unsetenv`` removes it (the
  value field must be present but is ignored). Other categories are
  ignored so newer scripts keep working with older runners.

Failure semantics
- A record with fewer than three fields is a :class:`DecodeError`. The
  decoder stops applying records at the first one but keeps draining the
  pipe so the child never blocks writing to it.
"""

from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from rib.constants import RECORD_SEPARATOR, UNIT_SEPARATOR
from rib.sandbox.errors import DecodeError
from rib.sandbox.streams import StreamConsumer

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rib.sandbox.env_store import PersistentEnvironmentStore

CATEGORY_SETENV: Final[str] = "setenv"
CATEGORY_UNSETENV: Final[str] = "unsetenv"

_CHUNK_SIZE: Final[int] = 64 * 1024


@dataclass(frozen=True, slots=True)
class SideChannelRecord:
    category: str
    key: str
    value: str


def iter_records(
    stream: io.BufferedIOBase, *, chunk_size: int = _CHUNK_SIZE
) -> Iterator[bytes]:
    """Yield NUL-delimited records from ``stream`` until end of file."""

    pending = bytearray()
    scanned = 0
    while True:
        chunk = stream.read1(chunk_size)
        if not chunk:
            break
        pending += chunk
        while True:
            index = pending.find(RECORD_SEPARATOR, scanned)
            if index < 0:
                # Bytes before this offset hold no separator.
                scanned = len(pending)
                break
            yield bytes(pending[:index])
            del pending[: index + 1]
            scanned = 0
    if pending:
        yield bytes(pending)


def parse_record(raw: bytes) -> SideChannelRecord:
    """Split one record into category, key and value."""

    fields = raw.split(UNIT_SEPARATOR, 2)
    if len(fields) < 3:
        raise DecodeError(raw)
    category, key, value = (os.fsdecode(field) for field in fields)
    return SideChannelRecord(category=category, key=key, value=value)


def apply_record(record: SideChannelRecord, store: PersistentEnvironmentStore) -> bool:
    """Apply ``record`` to ``store``; return ``False`` for ignored categories."""

    if record.category == CATEGORY_SETENV:
        store.setenv(record.key, record.value)
        return True
    if record.category == CATEGORY_UNSETENV:
        store.unsetenv(record.key)
        return True
    return False


def encode_record(category: str, key: str, value: str = "") -> bytes:
    """Frame one record the way a build script writes it."""

    fields = [os.fsencode(part) for part in (category, key, value)]
    return UNIT_SEPARATOR.join(fields) + RECORD_SEPARATOR


class SideChannelDecoder(StreamConsumer):
    """Consume the side-channel pipe and fold its records into the store."""

    label = "side-channel"

    def __init__(
        self,
        stream: io.BufferedIOBase,
        store: PersistentEnvironmentStore,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(stream, logger=logger)
        self._store = store
        self.applied = 0

    def consume(self) -> None:
        try:
            for raw in iter_records(self._stream):
                if self.error is not None:
                    continue
                self._handle(raw)
        except OSError as exc:
            self._logger.error("scan error on %s: %s", self.label, exc)

    def _handle(self, raw: bytes) -> None:
        try:
            record = parse_record(raw)
        except DecodeError as exc:
            self._logger.error("%s", exc)
            self.error = exc
            return

        if apply_record(record, self._store):
            self.applied += 1
            self._logger.debug("Side channel: %s %s", record.category, record.key)


__all__ = [
    "CATEGORY_SETENV",
    "CATEGORY_UNSETENV",
    "SideChannelDecoder",
    "SideChannelRecord",
    "apply_record",
    "encode_record",
    "iter_records",
    "parse_record",
]
