"""
Structured JSON Logging Configuration

Every record is emitted as one JSON object on stdout so the hosting
platform can filter by user_id, request_id or action.
"""

import logging
import json
import os
import sys
from datetime import datetime, timezone
from contextvars import ContextVar
from typing import Optional

# Context variables for request-scoped data
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)


class JSONFormatter(logging.Formatter):
    """
    Formats log records as JSON with automatic context injection.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        user_id = user_id_var.get()
        if user_id:
            log_data["user_id"] = user_id

        if hasattr(record, "action"):
            log_data["action"] = record.action
        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure structured JSON logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL.
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")

    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())

    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.addHandler(handler)

    # Reduce noise from third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, action: str, message: str, **kwargs) -> None:
    """
    Log a structured action with additional context.

    Example:
        log_action(logger, "info", "lead_created",
                   "Lead created", lead_id="9b1c...", source="Manual")
    """
    logger.log(
        getattr(logging, level.upper(), logging.INFO),
        message,
        extra={"action": action, "extra_data": kwargs},
    )
