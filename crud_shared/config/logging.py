"""
Structured logging for the CRUD layer.

Loggers returned by ``get_logger`` take context as keyword arguments:

    logger.info("Export finished", entity="Article", rows_written=2000)

In production every record is one JSON object per line; elsewhere it is a
coloured single line with the context appended. Both include the request
ID stamped by ``CorrelationIdFilter``.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from crud_shared.config.settings import settings

_NO_REQUEST = "-"


def _record_context(record: logging.LogRecord) -> dict[str, Any]:
    return getattr(record, "context", None) or {}


def _record_request_id(record: logging.LogRecord) -> str | None:
    request_id = getattr(record, "request_id", None)
    return request_id if request_id and request_id != _NO_REQUEST else None


class JsonFormatter(logging.Formatter):
    """One JSON document per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        request_id = _record_request_id(record)
        if request_id:
            payload["request_id"] = request_id
        context = _record_context(record)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if settings.debug:
            payload["where"] = f"{record.pathname}:{record.lineno} in {record.funcName}"
        return json.dumps(payload, default=str)


class ConsoleFormatter(logging.Formatter):
    """Coloured one-line output for local runs and tests."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[34m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;31m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        parts = [f"{color}{clock} {record.levelname[:4]}{self.RESET}"]

        request_id = _record_request_id(record)
        if request_id:
            parts.append(f"<{request_id[:8]}>")
        parts.append(f"{record.name} - {record.getMessage()}")

        context = _record_context(record)
        if context:
            parts.append(" ".join(f"{key}={value!r}" for key, value in context.items()))

        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class StructuredLogger(logging.Logger):
    """``logging.Logger`` whose methods accept arbitrary keyword context."""

    def _log(  # type: ignore[override]
        self,
        level: int,
        msg: object,
        args: Any,
        exc_info: Any = None,
        extra: dict | None = None,
        stack_info: bool = False,
        stacklevel: int = 1,
        **context: Any,
    ) -> None:
        extra = dict(extra or {})
        extra["context"] = context
        super()._log(
            level,
            msg,
            args,
            exc_info=exc_info,
            extra=extra,
            stack_info=stack_info,
            stacklevel=stacklevel + 1,
        )


logging.setLoggerClass(StructuredLogger)


def setup_logging() -> None:
    """
    Install the stdout handler on the root logger.
    Call once when the application starts.
    """
    from crud_shared.infrastructure.correlation import CorrelationIdFilter

    level = logging.DEBUG if settings.debug else logging.INFO
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    handler.setFormatter(JsonFormatter() if settings.environment == "production" else ConsoleFormatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> StructuredLogger:
    """
    Logger for ``name`` that takes keyword context.

    Usage:
        logger = get_logger(__name__)
        logger.warning("Unknown sort column", entity="Article", column="nope")
        logger.error("Commit failed", operation="update", exc_info=True)
    """
    return logging.getLogger(name)  # type: ignore[return-value]


crud_logger = get_logger("crud_api")
