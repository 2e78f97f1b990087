"""
Structured logging configuration for fairquote.

Uses structlog for consistent, machine-parseable log output.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import Processor

from fairquote.config.settings import Settings


def setup_logging(settings: Settings) -> None:
    """
    Configure structured logging for the application.

    Sets up structlog with appropriate processors based on environment.
    """
    # Common processors
    shared_processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class RequestLogger:
    """
    Middleware-style request logging for FastAPI.

    Logs request/response details with structured data.
    """

    def __init__(self):
        self.logger = get_logger("request")

    def log_request(
        self,
        method: str,
        path: str,
        user_id: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Log incoming request."""
        self.logger.info(
            "request_received",
            method=method,
            path=path,
            user_id=user_id,
            **(extra or {}),
        )

    def log_response(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
        user_id: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Log outgoing response."""
        log_method = self.logger.info if status_code < 400 else self.logger.warning
        log_method(
            "request_completed",
            method=method,
            path=path,
            status_code=status_code,
            duration_ms=round(duration_ms, 2),
            user_id=user_id,
            **(extra or {}),
        )


class AuditLogger:
    """
    Audit logging for changes to curated catalog data.

    Crowd quotes are high volume and are not audited; baseline edits are.
    """

    def __init__(self):
        self.logger = get_logger("audit")

    def log_catalog_change(
        self,
        action: str,
        user_id: str | None,
        region: str,
        key: str,
        old_values: dict | None = None,
        new_values: dict | None = None,
    ) -> None:
        """
        Log an auditable catalog change.

        Args:
            action: Action type (set_base_range, ...)
            user_id: Acting user reference, if the caller supplied one
            region: Catalog region
            key: Canonical service key
            old_values: Previous values
            new_values: New values
        """
        self.logger.info(
            "audit_event",
            action=action,
            user_id=user_id,
            resource_type="service_price_catalog",
            region=region,
            key=key,
            old_values=old_values,
            new_values=new_values,
        )


class ServiceLogger:
    """
    Service-level logging for business operations.

    Provides consistent logging across service modules.
    """

    def __init__(self, service_name: str):
        self.logger = get_logger(f"service.{service_name}")
        self.service_name = service_name

    def log_operation_start(
        self,
        operation: str,
        **kwargs: Any,
    ) -> None:
        """Log start of a business operation."""
        self.logger.info(
            f"{operation}_started",
            service=self.service_name,
            **kwargs,
        )

    def log_operation_complete(
        self,
        operation: str,
        duration_ms: float | None = None,
        **kwargs: Any,
    ) -> None:
        """Log successful completion of an operation."""
        self.logger.info(
            f"{operation}_completed",
            service=self.service_name,
            duration_ms=round(duration_ms, 2) if duration_ms else None,
            **kwargs,
        )

    def log_operation_failed(
        self,
        operation: str,
        error: Exception,
        **kwargs: Any,
    ) -> None:
        """Log failed operation with error details."""
        self.logger.error(
            f"{operation}_failed",
            service=self.service_name,
            error_type=type(error).__name__,
            error_message=str(error),
            **kwargs,
        )

    def log_degraded(
        self,
        operation: str,
        reason: str,
        **kwargs: Any,
    ) -> None:
        """Log an intentional fallback to a lower-fidelity path."""
        self.logger.warning(
            f"{operation}_degraded",
            service=self.service_name,
            reason=reason,
            **kwargs,
        )
