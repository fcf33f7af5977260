"""Public observability primitives: structured logging and correlation scopes."""

from code_quality_tools.observability.logging import (
    DEFAULT_LOGGER_NAME,
    LoggingConfig,
    configure_logging,
    correlation_scope,
    get_correlation_context,
    setup_logging,
)

__all__ = [
    "DEFAULT_LOGGER_NAME",
    "LoggingConfig",
    "configure_logging",
    "correlation_scope",
    "get_correlation_context",
    "setup_logging",
]
