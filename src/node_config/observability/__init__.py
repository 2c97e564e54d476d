"""Public observability primitives: structlog configuration and context binding."""

from node_config.observability.logging import (
    LoggingConfig,
    log_context,
    reset_logging,
    setup_logging,
)

__all__ = ["LoggingConfig", "log_context", "reset_logging", "setup_logging"]
