"""
Structured logging with correlation IDs.

Every log line carries the correlation ID of the unit of work it belongs to:
the ``X-Correlation-ID`` of an HTTP request, or ``job-<name>-<hex>`` for a
sync job, so one run can be followed across provider calls, upserts and the
failure alert. Context passed through ``extra=`` is kept under ``extra`` in
JSON output and appended as ``key=value`` pairs on the console.
"""
import json
import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Iterator

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

# Attributes every LogRecord has; anything else came in through extra=
_RECORD_ATTRS = set(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime"}

_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "apscheduler", "tenacity")


def _extra(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}


class JSONFormatter(logging.Formatter):
    """One JSON object per line: timestamp (UTC), level, logger, message, correlation_id."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": correlation_id_var.get(),
        }
        extra = _extra(record)
        if extra:
            entry["extra"] = extra
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """Readable console output for local development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        parts = [f"{color}[{record.levelname}]{self.RESET} {record.name}: {record.getMessage()}"]

        context = _extra(record)
        correlation_id = correlation_id_var.get()
        if correlation_id:
            context = {"correlation_id": correlation_id, **context}
        if context:
            parts.append(" ".join(f"{key}={value}" for key, value in context.items()))

        line = " | ".join(parts)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    handler: logging.Handler | None = None,
) -> None:
    """
    Install a single root handler.

    Args:
        level: Root log level name
        json_output: JSON lines (production) or colored console (development)
        handler: Handler to use instead of a stdout StreamHandler
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    handler = handler or logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else ColoredFormatter())
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def set_correlation_id(correlation_id: str) -> Any:
    """Returns the token for ``clear_correlation_id``."""
    return correlation_id_var.set(correlation_id)


def get_correlation_id() -> str:
    return correlation_id_var.get()


def clear_correlation_id(token: Any) -> None:
    correlation_id_var.reset(token)


@contextmanager
def job_correlation(job_name: str) -> Iterator[str]:
    """
    Correlation ID for a sync job run.

    A job started inside a request (the admin sync endpoint) keeps the
    request's ID; otherwise a ``job-<name>-<hex>`` ID is set for the
    duration of the block.
    """
    current = correlation_id_var.get()
    if current:
        yield current
        return

    correlation_id = f"job-{job_name}-{uuid.uuid4().hex[:8]}"
    token = correlation_id_var.set(correlation_id)
    try:
        yield correlation_id
    finally:
        correlation_id_var.reset(token)
