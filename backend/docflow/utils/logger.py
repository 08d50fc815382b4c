"""Structured JSON Logging with Correlation ID Support"""
import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional
from contextvars import ContextVar

from ..config.settings import settings

# Correlation ID of the request or background job being processed
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


class JsonFormatter(logging.Formatter):
    """One JSON object per line, carrying workflow context passed via `extra`"""

    extra_fields = (
        "document_id", "run_id", "step_id", "step_execution_id",
        "actor_id", "action", "status", "workflow_id", "user_id",
    )

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = correlation_id_var.get()
        if correlation_id:
            entry["correlation_id"] = correlation_id

        for field in self.extra_fields:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def _rotating_handler(filename: str, formatter: logging.Formatter, level: int = logging.NOTSET) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        os.path.join(settings.logs_path, filename),
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging() -> None:
    """
    Configure the root logger

    Everything goes to stdout and app.log; errors are also kept in error.log.
    """
    os.makedirs(settings.logs_path, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    formatter = JsonFormatter()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    root_logger.addHandler(_rotating_handler("app.log", formatter))
    root_logger.addHandler(_rotating_handler("error.log", formatter, logging.ERROR))

    # Third-party loggers are noisy at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> None:
    """Bind a correlation ID to the current context"""
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()
