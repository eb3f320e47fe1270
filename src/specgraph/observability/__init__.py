"""Public observability primitives: structured logging and correlation context."""

from specgraph.observability.logging import (
    LogFormat,
    LoggingConfig,
    StructuredLoggingHandle,
    correlation_scope,
    flush_logging,
    get_active_logging_handle,
    get_correlation_context,
    reset_correlation_fields,
    set_correlation_fields,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "LogFormat",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "correlation_scope",
    "flush_logging",
    "get_active_logging_handle",
    "get_correlation_context",
    "reset_correlation_fields",
    "set_correlation_fields",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
