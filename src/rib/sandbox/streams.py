"""Concurrent consumers for the pipes of a running build script."""

from __future__ import annotations

import io
import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class StreamConsumer:
    """
    Drain one stream on a dedicated thread.

    Each consumer publishes exactly one completion event, when its stream
    reaches end of file. An unexpected exception raised while consuming is
    kept in :attr:`error` for the orchestrating caller to re-raise.
    """

    label = "stream"

    def __init__(
        self,
        stream: io.BufferedIOBase,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        self._stream = stream
        self._logger = logger or logging.getLogger(__name__)
        self._finished = threading.Event()
        self._thread: threading.Thread | None = None
        self.error: Exception | None = None

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError(f"{self.label} consumer already started")
        self._thread = threading.Thread(
            target=self._run, name=f"rib-{self.label}-consumer", daemon=True
        )
        self._thread.start()

    def join(self) -> None:
        if self._thread is None:
            raise RuntimeError(f"{self.label} consumer was never started")
        self._thread.join()

    def run_inline(self) -> None:
        """Consume the stream on the calling thread."""

        self._run()

    def consume(self) -> None:
        raise NotImplementedError

    def _run(self) -> None:
        try:
            self.consume()
        except Exception as exc:  # noqa: BLE001 - handed to the joining thread.
            self.error = exc
        finally:
            self._finished.set()


class OutputCollector(StreamConsumer):
    """Forward each line of a child's stdout or stderr to the log at debug level."""

    def __init__(
        self,
        stream: io.BufferedIOBase,
        label: str,
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(stream, logger=logger)
        self.label = label

    def consume(self) -> None:
        try:
            for raw in iter(self._stream.readline, b""):
                line = decode_line(raw)
                self._logger.debug("[%s] %s", self.label, line, extra={"stream": self.label})
        except (OSError, ValueError) as exc:
            self._logger.error("scan error on %s: %s", self.label, exc)


def decode_line(raw: bytes) -> str:
    """Strip the line terminator and decode, replacing undecodable bytes."""

    if raw.endswith(b"\n"):
        raw = raw[:-1]
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    return raw.decode("utf-8", errors="replace")


def join_all(consumers: Iterable[StreamConsumer]) -> None:
    """Wait until every consumer has reached the end of its stream."""

    for consumer in consumers:
        consumer.join()


__all__ = ["OutputCollector", "StreamConsumer", "decode_line", "join_all"]
