# coldchain/logging.py
"""
Structured logging for the cold-chain transit simulator.

Every line is one JSON object:
- ts: RFC 3339 UTC timestamp, same format as compliance event times
- level, logger, event
- context bound to the logger (package uid, route number, ...)
- keyword fields of the call

Usage:
    from coldchain.logging import get_logger
    logger = get_logger(__name__)

    log = logger.bind(uid="4730f2294a6156c8")
    log.info("package_picked_up", office="PHX", route="SLS004")
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

SERVICE_NAME = "coldchain-transit-simulator"

# Libraries that log every request or statement at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine")


class JsonLineFormatter(logging.Formatter):
    """Formats a record and its structured fields as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        line: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ"),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "event": record.getMessage(),
        }
        line.update(getattr(record, "fields", {}))

        if record.exc_info:
            line["exception"] = self.formatException(record.exc_info)
        if record.levelno >= logging.ERROR:
            line["at"] = f"{record.pathname}:{record.lineno}"

        return json.dumps(line, default=str)


class StructuredLogger:
    """
    Logger taking an event name plus keyword fields.

    bind() returns a child logger that adds the given fields to every
    line, so a transit can log under its package uid without repeating it.
    """

    def __init__(self, name: str, context: Optional[Dict[str, Any]] = None):
        self._logger = logging.getLogger(name)
        self._context = dict(context or {})

    def bind(self, **fields) -> "StructuredLogger":
        return StructuredLogger(self._logger.name, {**self._context, **fields})

    def _log(self, level: int, event: str, exc_info: bool = False, **fields):
        if not self._logger.isEnabledFor(level):
            return
        self._logger.log(
            level,
            event,
            exc_info=exc_info,
            extra={"fields": {**self._context, **fields}},
            stacklevel=3,
        )

    def debug(self, event: str, **fields):
        self._log(logging.DEBUG, event, **fields)

    def info(self, event: str, **fields):
        self._log(logging.INFO, event, **fields)

    def warning(self, event: str, **fields):
        self._log(logging.WARNING, event, **fields)

    def error(self, event: str, exc_info: bool = False, **fields):
        self._log(logging.ERROR, event, exc_info=exc_info, **fields)

    def exception(self, event: str, **fields):
        """Log at ERROR with the active exception's traceback."""
        self._log(logging.ERROR, event, exc_info=True, **fields)


_configured = False


def configure_logging(level: str = "INFO", json_output: bool = True):
    """
    Install the stdout handler on the root logger. Only the first call
    takes effect.

    Args:
        level: Log level name; unknown names fall back to INFO
        json_output: JSON lines (True) or plain text for local runs (False)
    """
    global _configured
    if _configured:
        return
    _configured = True

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger, configuring logging from settings on first use.

    Args:
        name: Logger name (typically __name__)
    """
    if not _configured:
        from .settings import settings
        configure_logging(level=settings.log_level, json_output=settings.log_json)
    return StructuredLogger(name)


def get_api_logger() -> StructuredLogger:
    """Get logger for API routes."""
    return get_logger("coldchain.api")
