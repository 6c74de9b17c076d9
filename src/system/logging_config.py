"""
Centralized Logging Configuration for the CRM sync tooling.

Provides console and rotating file logging plus a dedicated audit log for
every statement that rewrites data (development truncates, production upserts).
"""

import logging
import logging.handlers
import os
import sys
from datetime import datetime
from typing import Optional

from src.config.settings import Settings, settings as default_settings


_AUDIT_FIELDS = ("user_id", "action", "resource_type", "resource_id", "details")


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured logging."""

    def format(self, record):
        # Add custom fields to log record
        record.service_name = getattr(record, 'service_name', 'crm-sync')
        for name in _AUDIT_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, None)

        # Format timestamp
        record.timestamp = datetime.fromtimestamp(record.created).isoformat()

        return super().format(record)


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Setup console, file and audit logging."""
    settings = settings or default_settings

    # Create logs directory if it doesn't exist
    log_dir = settings.app.log_dir
    os.makedirs(log_dir, exist_ok=True)

    # Root logger configuration
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.app.log_level.upper(), logging.INFO))

    # Clear existing handlers
    root_logger.handlers.clear()

    # Console handler: the operator-facing summary of every run
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)

    console_format = "%(asctime)s - %(levelname)s - %(message)s"

    if settings.app.debug:
        console_format = (
            "%(asctime)s - %(name)s - %(levelname)s - "
            "[%(filename)s:%(lineno)d] - %(message)s"
        )

    console_handler.setFormatter(logging.Formatter(console_format))
    root_logger.addHandler(console_handler)

    # File handler for general application logs
    app_file_handler = logging.handlers.RotatingFileHandler(
        filename=os.path.join(log_dir, "app.log"),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5
    )
    app_file_handler.setLevel(logging.INFO)
    app_file_handler.setFormatter(StructuredFormatter(
        "%(timestamp)s - %(name)s - %(levelname)s - "
        "%(service_name)s - %(message)s"
    ))
    root_logger.addHandler(app_file_handler)

    # Error file handler for errors and above
    error_file_handler = logging.handlers.RotatingFileHandler(
        filename=os.path.join(log_dir, "errors.log"),
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10
    )
    error_file_handler.setLevel(logging.ERROR)
    error_file_handler.setFormatter(StructuredFormatter(
        "%(timestamp)s - %(name)s - %(levelname)s - "
        "%(service_name)s - [%(filename)s:%(lineno)d] - %(message)s"
    ))
    root_logger.addHandler(error_file_handler)

    # Audit log handler for data-rewriting actions
    audit_logger = logging.getLogger("audit")
    audit_logger.setLevel(logging.INFO)
    audit_logger.propagate = False
    audit_logger.handlers.clear()

    audit_file_handler = logging.handlers.RotatingFileHandler(
        filename=os.path.join(log_dir, "audit.log"),
        maxBytes=50 * 1024 * 1024,  # 50MB
        backupCount=50  # Keep more audit logs
    )
    audit_file_handler.setFormatter(StructuredFormatter(
        "%(timestamp)s - %(user_id)s - %(action)s - "
        "%(resource_type)s - %(resource_id)s - %(details)s"
    ))
    audit_logger.addHandler(audit_file_handler)

    # Set specific logger levels
    logging.getLogger("asyncpg").setLevel(logging.WARNING)

    logging.info("Logging configuration initialized")


class LoggerAdapter(logging.LoggerAdapter):
    """Custom logger adapter for adding context to log messages."""

    def __init__(self, logger, extra=None):
        super().__init__(logger, extra or {})

    def process(self, msg, kwargs):
        # Add extra context to log record
        if 'extra' not in kwargs:
            kwargs['extra'] = {}

        kwargs['extra'].update(self.extra)
        return msg, kwargs


def get_logger(name: str, **context) -> LoggerAdapter:
    """Get a logger with optional context."""
    logger = logging.getLogger(name)
    return LoggerAdapter(logger, context)


def log_audit_event(
    action: str,
    resource_type: str,
    resource_id: str = None,
    details: str = None,
    user_id: str = None
) -> None:
    """Log an audit event."""
    audit_logger = logging.getLogger("audit")

    audit_logger.info(
        f"{action} on {resource_type}",
        extra={
            "user_id": user_id or os.getenv("USER", "system"),
            "action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "details": details or ""
        }
    )
