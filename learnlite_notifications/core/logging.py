"""Structured JSON logging for the notifications subsystem."""

import json
import logging
from datetime import UTC, datetime
from typing import Any

# Dynamically derive standard LogRecord attributes at module import time
# This ensures future Python additions (like taskName) are automatically handled
_STANDARD_LOGRECORD_KEYS: frozenset[str] = frozenset(
    logging.LogRecord(
        name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None
    ).__dict__.keys()
)

ROOT_LOGGER_NAME = "learnlite_notifications"


class JSONFormatter(logging.Formatter):
    """JSON formatter with UTC ISO8601 timestamps."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Standard outbox fields first so they lead the line
        for field in ("event_id", "topic", "sink", "cycle"):
            if hasattr(record, field):
                log_data[field] = getattr(record, field)

        for key, value in vars(record).items():
            if key not in _STANDARD_LOGRECORD_KEYS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data["exc_info"] = self.formatException(record.exc_info)

        try:
            return json.dumps(log_data, default=str)
        except Exception:
            return str(log_data)


def _setup_json_handler(logger: logging.Logger, level: int | str | None) -> None:
    """Configure a logger with JSON formatting.

    Args:
        logger: The logger to configure.
        level: The logging level to set. None leaves the level unset so it is
            inherited from the package logger.
    """
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    if package_logger.level == logging.NOTSET:
        package_logger.setLevel(logging.INFO)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(JSONFormatter())
        logger.addHandler(handler)
    if level is not None:
        logger.setLevel(level)
    logger.propagate = False


def configure_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Set the package log level; child loggers inherit it.

    Args:
        level: The logging level, e.g. ``"DEBUG"`` or ``logging.INFO``.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    _setup_json_handler(logger, level.upper() if isinstance(level, str) else level)
    return logger


def configure_worker_logger(level: int | str | None = None) -> logging.Logger:
    """Configure and return the worker logger with JSON formatting."""
    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.worker")
    _setup_json_handler(logger, level)
    return logger


def get_logger(name: str = ROOT_LOGGER_NAME, level: int | str | None = None) -> logging.Logger:
    """Get a logger with JSON formatting.

    Args:
        name: The logger name. Defaults to the package root logger.
        level: Optional logging level. Defaults to the package level.
    """
    logger = logging.getLogger(name)
    _setup_json_handler(logger, level)
    return logger
