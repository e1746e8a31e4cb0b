"""
Logging configuration for the Dear23 backend.

Every line is one JSON object. Fields bound with ``bind_context`` (request
id, uid) are added to each line logged while handling that request or
realtime connection.
"""

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any, Dict

_log_context: ContextVar[Dict[str, Any]] = ContextVar("dear23_log_context", default={})


def bind_context(**fields: Any) -> Token:
    """
    Add fields to every log line of the current request or connection.

    ``None`` values are skipped. Returns a token for ``reset_context``.
    """
    bound = {key: value for key, value in fields.items() if value is not None}
    return _log_context.set({**_log_context.get(), **bound})


def reset_context(token: Token) -> None:
    _log_context.reset(token)


def current_context() -> Dict[str, Any]:
    return dict(_log_context.get())


class JSONFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """
        Format log record as JSON.

        Args:
            record: Log record to format.

        Returns:
            JSON-formatted log string.
        """
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        log_data.update(_log_context.get())

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        return json.dumps(log_data, default=str)


def configure_logging(debug: bool = False) -> logging.Logger:
    """Attach a JSON stdout handler to the ``dear23`` logger tree."""
    logger = logging.getLogger("dear23")
    logger.handlers.clear()

    log_level = logging.DEBUG if debug else logging.INFO
    logger.setLevel(log_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(JSONFormatter())
    logger.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Logger namespaced under ``dear23`` so ``configure_logging`` covers it."""
    return logging.getLogger(f"dear23.{name}")
