"""Logging setup: JSON lines in production, readable lines elsewhere."""

import json
import logging
import sys
from contextvars import ContextVar
from typing import Any, Dict, Optional

from knowledge_engine.config import get_settings

ROOT_LOGGER = "knowledge_engine"

# Set per HTTP request by RequestIDMiddleware
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Libraries that log too much at INFO
QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "fastapi", "httpx", "openai", "botocore", "celery.worker.strategy")

_STANDARD_ATTRS = set(logging.LogRecord("", 0, "", 0, "", None, None).__dict__) | {
    "message",
    "asctime",
    "taskName",
    "extra_fields",
    "request_id",
}

_configured: Optional[logging.Logger] = None


class JSONFormatter(logging.Formatter):
    """One JSON object per record, including ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        request_id = request_id_var.get()
        if request_id:
            payload["request_id"] = request_id
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        payload.update(getattr(record, "extra_fields", {}))
        payload.update({key: value for key, value in record.__dict__.items() if key not in _STANDARD_ATTRS})
        return json.dumps(payload, default=str)


class StandardFormatter(logging.Formatter):
    def __init__(self):
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s %(name)s [%(request_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        record.request_id = request_id_var.get() or "-"
        return super().format(record)


def setup_logging() -> logging.Logger:
    """Configure the package logger once; later calls return it unchanged."""
    global _configured
    if _configured is not None:
        return _configured

    settings = get_settings()
    level = getattr(logging, settings.log_level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if settings.is_production else StandardFormatter())

    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.database.echo else logging.WARNING)

    _configured = logger
    logger.info(f"Logging configured: level={settings.log_level}, environment={settings.environment.value}")
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger under the package namespace, e.g. ``get_logger("search")``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def log_request(method: str, path: str, status_code: int, duration_ms: float, **fields: Any) -> None:
    """Access log line with structured fields."""
    get_logger("http").info(
        f"{method} {path} {status_code} {duration_ms:.1f}ms",
        extra={
            "extra_fields": {
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round(duration_ms, 2),
                **{key: value for key, value in fields.items() if value is not None},
            }
        },
    )


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None, **fields: Any) -> None:
    """Log an exception with its traceback and the operation context."""
    get_logger("error").error(
        f"{type(error).__name__}: {error}",
        exc_info=error,
        extra={
            "extra_fields": {
                "error_type": type(error).__name__,
                "error_message": str(error),
                "context": context or {},
                **fields,
            }
        },
    )
