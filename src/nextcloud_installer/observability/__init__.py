"""Observability package: structured JSON-lines logging for installer runs."""

from nextcloud_installer.observability.logging import (
    RunLog,
    configure_structlog,
    correlation_scope,
    redact_value,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    "RunLog",
    "configure_structlog",
    "correlation_scope",
    "redact_value",
    "setup_logging",
    "shutdown_logging",
]
