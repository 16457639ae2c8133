"""
Structured logging for the relay.

Log calls take free-form keyword fields:

    logger.info("Viewer registered", viewer_id=vid, viewer_count=3)

The fields travel on the record as `extra_data` and are rendered as a JSON
object in production or as `key=value` pairs in development. Every record
also carries the id of the connection whose task emitted it (see
shared.infrastructure.correlation).
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from shared.config.settings import settings

SERVICE_NAME = "broadcast-relay"

# Third-party loggers and the most verbose level we want from them
_QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "uvicorn.error": logging.INFO,
    "websockets": logging.WARNING,
    "asyncio": logging.WARNING,
}


def _record_fields(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "extra_data", None) or {}


def _record_connection(record: logging.LogRecord) -> str | None:
    connection_id = getattr(record, "connection_id", None)
    if not connection_id or connection_id == "-":
        return None
    return connection_id


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "logger": record.name,
            "message": record.getMessage(),
        }
        connection_id = _record_connection(record)
        if connection_id:
            entry["connection_id"] = connection_id
        fields = _record_fields(record)
        if fields:
            entry["data"] = fields
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        if settings.debug:
            entry["source"] = f"{record.pathname}:{record.lineno} in {record.funcName}"
        return json.dumps(entry, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):
    """Colored single-line output for a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        parts = [f"{self.DIM}{clock}{self.RESET}", f"{color}{record.levelname:<8}{self.RESET}"]

        connection_id = _record_connection(record)
        if connection_id:
            parts.append(f"{self.DIM}conn={connection_id}{self.RESET}")
        parts.append(f"{record.name}: {record.getMessage()}")

        fields = _record_fields(record)
        if fields:
            parts.append(" ".join(f"{key}={value!r}" for key, value in fields.items()))

        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class StructuredLogger(logging.Logger):
    """
    Logger whose calls accept arbitrary keyword fields.

    Standard keywords (exc_info, extra, stack_info, stacklevel) keep their
    usual meaning; anything else is collected into `record.extra_data`.
    """

    def _log(
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: dict[str, Any] | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **fields: Any,
    ) -> None:
        merged = dict(extra) if extra else {}
        merged["extra_data"] = fields or None
        # One extra frame: this override sits between the caller and logging
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=merged,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """
    Install the relay's log handler on the root logger.
    Call this once at application startup.
    """
    from shared.infrastructure.correlation import ConnectionIdFilter

    level = logging.DEBUG if settings.debug else logging.INFO
    production = settings.environment == "production"

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(ConnectionIdFilter())
    handler.setFormatter(StructuredFormatter() if production else DevelopmentFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name, quiet_level in _QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)


def get_logger(name: str) -> StructuredLogger:
    """
    Get a structured logger.

    Usage:
        from shared.config.logging import get_logger
        logger = get_logger(__name__)

        logger.warning("Offer target viewer not found", viewer_id=vid)
    """
    return logging.getLogger(name)  # type: ignore[return-value]


# Logger for application-level events of the relay service
relay_logger = get_logger("broadcast_relay")
