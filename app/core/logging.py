"""
Logging configuration for the Course Assessment service
Sets up structured logging with optional file rotation
"""

import json
import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path

from app.core.config import settings

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
            "environment": settings.ENVIRONMENT,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_logging() -> None:
    """
    Configure application logging
    Sets up console and optional file handlers with appropriate formatters
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Clear existing handlers
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    if settings.is_production():
        console_formatter = JSONFormatter()
    else:
        console_formatter = logging.Formatter(fmt=settings.LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if settings.LOG_FILE:
        Path(settings.LOG_FILE).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            filename=settings.LOG_FILE,
            maxBytes=settings.LOG_MAX_BYTES,
            backupCount=settings.LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        # Always use JSON format for file logs
        file_handler.setFormatter(JSONFormatter())
        root_logger.addHandler(file_handler)

    # Configure third-party loggers
    logging.getLogger("uvicorn").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    root_logger.info(
        "Logging configured",
        extra={
            "log_level": settings.LOG_LEVEL,
            "log_file": settings.LOG_FILE,
        },
    )


class LoggerFactory:
    """Factory for creating loggers with consistent configuration"""

    @staticmethod
    def get_request_logger() -> logging.Logger:
        """Get logger for request/response logging"""
        return logging.getLogger("assessments.request")

    @staticmethod
    def get_security_logger() -> logging.Logger:
        """Get logger for security events"""
        return logging.getLogger("assessments.security")

    @staticmethod
    def get_audit_logger() -> logging.Logger:
        """Get logger for audit events"""
        return logging.getLogger("assessments.audit")


def log_business_operation(
    logger: logging.Logger, operation: str, entity: str, entity_id, status: str, **details
) -> None:
    """
    Log the outcome of a business operation with structured fields

    Args:
        logger: Logger to write to
        operation: Operation name, e.g. CREATE_QUIZ
        entity: Entity type, e.g. QUIZ
        entity_id: Identifier of the affected entity
        status: SUCCESS or ERROR
    """
    logger.info(
        f"{operation} {entity} {entity_id}: {status}",
        extra={
            "business": {
                "operation": operation,
                "entity": entity,
                "entity_id": entity_id,
                "status": status,
            },
            "details": details,
        },
    )


def log_audit_trail(operation: str, entity: str, entity_id, before, after, user_id) -> None:
    """Record a before/after snapshot on the audit logger"""
    LoggerFactory.get_audit_logger().info(
        f"AUDIT {operation} {entity} {entity_id}",
        extra={
            "audit": {
                "operation": operation,
                "entity": entity,
                "entity_id": entity_id,
                "before": before,
                "after": after,
                "user_id": user_id,
            }
        },
    )
