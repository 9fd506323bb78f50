"""
rib — logging setup

File: src/rib/observability/logging.py

Purpose
- Configure the ``rib`` logger with a queue between the emitting threads
  (the runner and its stream consumers) and the output sinks.

Functional requirements
- Text lines read ``2006-01-02T15:04:05.000Z LEVEL message`` in UTC with
  the message escaped to printable ASCII; JSON lines are available for
  machine consumption.
- Sinks can be attached while logging is active (the build log is added
  once the work directory is known).
- The queue is unbounded: script output is never dropped under load.
"""

from __future__ import annotations

import atexit
import json
import logging
import logging.handlers
import math
import queue
import sys
import threading
import time
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Final, Literal, TextIO

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogFormat = Literal["text", "json"]

DEFAULT_LOGGER_NAME: Final[str] = "rib"
LOG_FORMATS: Final[tuple[str, ...]] = ("text", "json")
_LOG_FILE_MODE: Final[int] = 0o600

_STANDARD_LOG_RECORD_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
    }
)

_ACTIVE_HANDLE_LOCK = threading.Lock()
_ACTIVE_HANDLE: LoggingHandle | None = None
_ATEXIT_REGISTERED = False


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Configuration for queue-backed logging."""

    logger_name: str = DEFAULT_LOGGER_NAME
    level: int | str = "DEBUG"
    log_format: LogFormat = "text"
    log_to_stderr: bool = False
    include_caller: bool = False
    log_file: Path | str | None = None


class _TextLineFormatter(logging.Formatter):
    """One line per record: timestamp, optional caller, level and escaped message."""

    def __init__(self, *, include_caller: bool = False) -> None:
        super().__init__()
        self._include_caller = include_caller

    def format(self, record: logging.LogRecord) -> str:
        parts = [_iso8601z_from_epoch(record.created)]
        if self._include_caller:
            parts.append(f"{record.filename}:{record.funcName}():{record.lineno}")
        parts.append(record.levelname)
        parts.append(quote_ascii(record.getMessage()))
        return " ".join(parts)


class _JsonLineFormatter(logging.Formatter):
    """Formatter that emits one JSON object per log line."""

    def __init__(self, *, include_caller: bool = False) -> None:
        super().__init__()
        self._include_caller = include_caller

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": _iso8601z_from_epoch(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self._include_caller:
            event["caller"] = f"{record.filename}:{record.funcName}():{record.lineno}"

        extras = _extract_extra_fields(record)
        if extras:
            event["fields"] = extras

        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class LoggingHandle:
    """Runtime handle for an active logging setup."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        level: int,
        formatter: logging.Formatter,
        log_queue: queue.Queue[object],
        queue_handler: logging.handlers.QueueHandler,
        listener: logging.handlers.QueueListener,
    ) -> None:
        self.logger = logger
        self.level = level
        self._formatter = formatter
        self._queue = log_queue
        self._queue_handler = queue_handler
        self._listener = listener
        self._sinks: list[logging.Handler] = []
        self._owned: set[int] = set()
        self._lock = threading.Lock()
        self._is_shutdown = False

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    @property
    def sinks(self) -> tuple[logging.Handler, ...]:
        with self._lock:
            return tuple(self._sinks)

    def add_sink(self, target: TextIO | Path | str) -> logging.Handler:
        """
        Attach another output to the running listener.

        ``target`` is either an open text stream (left open on removal) or a
        file path, which is opened in append mode and closed on removal.
        """

        if self._is_shutdown:
            raise RuntimeError("logging has been shut down")

        # Records queued before this call belong to the sinks already attached.
        self.flush()

        handler: logging.Handler
        if isinstance(target, (str, Path)):
            path = Path(target)
            path.touch(mode=_LOG_FILE_MODE, exist_ok=True)
            handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        else:
            handler = logging.StreamHandler(target)
        handler.setLevel(self.level)
        handler.setFormatter(self._formatter)

        with self._lock:
            self._sinks.append(handler)
            if isinstance(target, (str, Path)):
                self._owned.add(id(handler))
            self._listener.handlers = tuple(self._sinks)
        return handler

    def remove_sink(self, handler: logging.Handler) -> None:
        """Detach ``handler`` once every record queued so far was written."""

        self.flush()
        with self._lock:
            if handler not in self._sinks:
                return
            self._sinks.remove(handler)
            self._listener.handlers = tuple(self._sinks)
            owned = id(handler) in self._owned
            self._owned.discard(id(handler))

        handler.flush()
        if owned:
            handler.close()

    def flush(self, *, timeout_seconds: float = 5.0) -> None:
        deadline = time.monotonic() + max(timeout_seconds, 0.0)
        while self._queue.unfinished_tasks > 0 and time.monotonic() < deadline:
            time.sleep(0.01)

        for handler in self.sinks:
            handler.flush()

    def shutdown(self, *, timeout_seconds: float = 5.0) -> None:
        with self._lock:
            if self._is_shutdown:
                return
            self._is_shutdown = True

        self.flush(timeout_seconds=timeout_seconds)
        self._listener.stop()

        self.logger.removeHandler(self._queue_handler)
        self._queue_handler.close()

        with self._lock:
            sinks = list(self._sinks)
            owned = set(self._owned)
            self._sinks.clear()
            self._owned.clear()
        for handler in sinks:
            handler.flush()
            if id(handler) in owned:
                handler.close()


def setup_logging(config: LoggingConfig | None = None) -> LoggingHandle:
    """Configure queue-backed logging and return its handle."""

    config = config or LoggingConfig()
    _shutdown_previous_active_handle()

    level = parse_log_level(config.level)
    formatter = build_formatter(config.log_format, include_caller=config.include_caller)

    logger = logging.getLogger(config.logger_name)
    logger.setLevel(level)
    logger.propagate = False

    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    log_queue: queue.Queue[object] = queue.Queue()
    queue_handler = logging.handlers.QueueHandler(log_queue)
    queue_handler.setLevel(level)

    listener = logging.handlers.QueueListener(log_queue, respect_handler_level=True)
    handle = LoggingHandle(
        logger=logger,
        level=level,
        formatter=formatter,
        log_queue=log_queue,
        queue_handler=queue_handler,
        listener=listener,
    )
    if config.log_to_stderr:
        handle.add_sink(sys.stderr)
    if config.log_file is not None:
        handle.add_sink(config.log_file)

    listener.start()
    logger.addHandler(queue_handler)

    with _ACTIVE_HANDLE_LOCK:
        global _ACTIVE_HANDLE
        _ACTIVE_HANDLE = handle

    _register_atexit_shutdown()
    return handle


def build_formatter(log_format: str, *, include_caller: bool = False) -> logging.Formatter:
    if log_format == "text":
        return _TextLineFormatter(include_caller=include_caller)
    if log_format == "json":
        return _JsonLineFormatter(include_caller=include_caller)
    raise ValueError(f"unsupported log format {log_format!r}")


def flush_logging(handle: LoggingHandle | None = None) -> None:
    """Flush queued records to the configured sinks."""

    resolved = handle if handle is not None else get_active_logging_handle()
    if resolved is not None:
        resolved.flush()


def shutdown_logging(handle: LoggingHandle | None = None) -> None:
    """Stop the listener and close the sinks logging opened itself."""

    resolved = handle if handle is not None else get_active_logging_handle()
    if resolved is None:
        return

    resolved.shutdown()

    with _ACTIVE_HANDLE_LOCK:
        global _ACTIVE_HANDLE
        if _ACTIVE_HANDLE is resolved:
            _ACTIVE_HANDLE = None


def get_active_logging_handle() -> LoggingHandle | None:
    with _ACTIVE_HANDLE_LOCK:
        return _ACTIVE_HANDLE


def parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value

    if not isinstance(value, str):
        raise ValueError(f"level must be int or str, got {type(value).__name__}")

    parsed = logging.getLevelName(value.strip().upper())
    if isinstance(parsed, int):
        return parsed

    raise ValueError(f"unsupported logging level {value!r}")


def quote_ascii(text: str) -> str:
    """Escape control and non-ASCII characters; the result has no surrounding quotes."""

    return json.dumps(text, ensure_ascii=True)[1:-1]


def _shutdown_previous_active_handle() -> None:
    existing = get_active_logging_handle()
    if existing is not None:
        existing.shutdown()

    with _ACTIVE_HANDLE_LOCK:
        global _ACTIVE_HANDLE
        _ACTIVE_HANDLE = None


def _register_atexit_shutdown() -> None:
    global _ATEXIT_REGISTERED
    if _ATEXIT_REGISTERED:
        return
    atexit.register(shutdown_logging)
    _ATEXIT_REGISTERED = True


def _iso8601z_from_epoch(epoch_seconds: float) -> str:
    timestamp = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, JSONValue]:
    fields: dict[str, JSONValue] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOG_RECORD_FIELDS or key.startswith("_"):
            continue
        fields[key] = _normalize_json_value(value)
    return fields


def _normalize_json_value(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else repr(value)
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    if isinstance(value, Mapping):
        return {str(key): _normalize_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_json_value(item) for item in value]
    return repr(value)


__all__ = [
    "DEFAULT_LOGGER_NAME",
    "LOG_FORMATS",
    "LogFormat",
    "LoggingConfig",
    "LoggingHandle",
    "build_formatter",
    "flush_logging",
    "get_active_logging_handle",
    "parse_log_level",
    "quote_ascii",
    "setup_logging",
    "shutdown_logging",
]
