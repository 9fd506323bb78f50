"""Public observability primitives: queue-backed logging with runtime sinks."""

from rib.observability.logging import (
    DEFAULT_LOGGER_NAME,
    LoggingConfig,
    LoggingHandle,
    flush_logging,
    get_active_logging_handle,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "DEFAULT_LOGGER_NAME",
    "LoggingConfig",
    "LoggingHandle",
    "flush_logging",
    "get_active_logging_handle",
    "setup_logging",
    "shutdown_logging",
]
