"""
Cash-Up Engine - Centralized Logging
====================================
Safe logging setup with request_id injection.
Prevents "--- Logging error ---" crashes.
"""

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Optional

from core.config import Settings
from core.constants import LOG_DATE_FORMAT, LOG_FORMAT

# Context variable for request_id (thread-safe)
_request_id_var: ContextVar[str] = ContextVar("request_id", default="-")

RequestIdToken = Token


def set_request_id(request_id: str) -> RequestIdToken:
    """
    Set request_id for current context.

    Returns:
        Token that can be used to reset to previous value.
    """
    return _request_id_var.set(request_id or "-")


def reset_request_id(token: RequestIdToken) -> None:
    """Reset request_id to previous value using token."""
    _request_id_var.reset(token)


def get_request_id() -> str:
    """Get request_id from current context, default '-'."""
    return _request_id_var.get()


class RequestIdFilter(logging.Filter):
    """
    Logging filter that injects request_id into every log record.
    Falls back to "-" if no request context is available.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id") or record.request_id is None:
            record.request_id = get_request_id()
        return True


class SafeFormatter(logging.Formatter):
    """
    Formatter that safely handles missing fields.
    Prevents KeyError crashes when fields are missing.
    """

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "request_id") or record.request_id is None:
            record.request_id = "-"
        return super().format(record)


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter for structured logging.
    Only used when JSON_LOGS=true.
    """

    EXTRA_KEYS = ("user_id", "submission_id", "date_key", "action")

    def format(self, record: logging.LogRecord) -> str:
        request_id = getattr(record, "request_id", "-") or "-"

        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": request_id,
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        for key in self.EXTRA_KEYS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


# Track if logging has been setup
_logging_initialized = False


def setup_logging(
    settings: Optional[Settings] = None,
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
) -> logging.Logger:
    """
    Setup logging with request_id support.

    Safe to call multiple times - only initializes once.

    Args:
        settings: Settings to read LOG_LEVEL / JSON_LOGS from.
        level: Log level override (DEBUG, INFO, WARNING, ERROR).
        json_format: JSON format override.

    Returns:
        The root cashup logger.
    """
    global _logging_initialized

    if _logging_initialized:
        return logging.getLogger("cashup")

    settings = settings or Settings()

    if level is None:
        level = settings.LOG_LEVEL
    if isinstance(level, int):
        log_level = level
    else:
        log_level = getattr(logging, str(level).upper(), logging.INFO)

    if json_format is None:
        json_format = settings.JSON_LOGS

    if json_format:
        formatter = JSONFormatter()
    else:
        formatter = SafeFormatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_handler = logging.StreamHandler(sys.stdout)
    root_handler.setFormatter(formatter)
    root_handler.addFilter(RequestIdFilter())
    root_handler.setLevel(log_level)

    cashup_logger = logging.getLogger("cashup")
    cashup_logger.setLevel(log_level)
    cashup_logger.handlers = []
    cashup_logger.addHandler(root_handler)
    cashup_logger.propagate = False

    uvicorn_access = logging.getLogger("uvicorn.access")
    uvicorn_access.handlers = []
    uvicorn_access.addHandler(root_handler)
    uvicorn_access.propagate = False

    # Suppress noisy loggers
    for noisy in ("urllib3", "httpx", "httpcore", "asyncio", "multipart"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _logging_initialized = True
    return cashup_logger


def get_logger(name: str = "cashup") -> logging.Logger:
    """
    Get a logger with the given name.

    Automatically prefixes with 'cashup.' if not already prefixed.
    Does not configure handlers; call setup_logging() once at startup.
    """
    if not name.startswith("cashup"):
        name = f"cashup.{name}"
    return logging.getLogger(name)


__all__ = [
    "setup_logging",
    "get_logger",
    "get_request_id",
    "set_request_id",
    "reset_request_id",
    "RequestIdFilter",
    "SafeFormatter",
    "JSONFormatter",
]
