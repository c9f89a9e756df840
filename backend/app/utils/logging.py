# backend/app/utils/logging.py
"""
Logging configuration for the Inventory Value Tracker.

Centralized stdlib logging setup:
- Level from LOG_LEVEL, format from LOG_FORMAT (text | json)
- Every record carries the request correlation ID (also inside the
  price lookup worker threads, see app.utils.context.bind_context)
- HTTP client libraries are quieted to WARNING: one sync issues one
  request per item and would otherwise flood the log

Usage:
    from app.utils import setup_logging

    # In main.py, before creating the FastAPI app
    setup_logging()

Log Levels:
    DEBUG   - Cache decisions, payload sizes, per-step details
    INFO    - Sync started/completed, snapshot committed, cache served
    WARNING - Failed price lookups, rate limits, retries
    ERROR   - Rolled back transactions, providers down
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from app.config import settings
from app.utils.context import get_correlation_id

# =============================================================================
# CONSTANTS
# =============================================================================

# timestamp | level | correlation_id | thread | logger_name | message
DEFAULT_TEXT_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(threadName)s | %(name)s | %(message)s"
)
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NO_CORRELATION_ID = "-"

# Set to WARNING by setup_logging()
NOISY_LOGGERS = [
    "httpx",
    "httpcore",
    "urllib3",
    "asyncio",
]

# LogRecord attributes that are not user-supplied `extra` fields
_STANDARD_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "correlation_id", "message", "taskName",
})


# =============================================================================
# FILTER & FORMATTER
# =============================================================================

class CorrelationIdFilter(logging.Filter):
    """Adds `correlation_id` to every record passing the handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line, for log aggregation.

    {"timestamp": "...", "level": "INFO", "logger": "app.services.sync.service",
     "correlation_id": "...", "thread": "price_0", "message": "...", "extra": {...}}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "thread": record.threadName,
            "message": record.getMessage(),
        }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS
        }
        if extra:
            # default=str covers Decimal and datetime values
            entry["extra"] = extra

        return json.dumps(entry, default=str)


# =============================================================================
# SETUP
# =============================================================================

def setup_logging(
        level: str | None = None,
        log_format: str | None = None,
        suppress_noisy_loggers: bool = True,
) -> None:
    """
    Configure the root logger once at application startup.

    Args:
        level: Log level name; defaults to settings.log_level
        log_format: 'text' or 'json'; defaults to settings.log_format
        suppress_noisy_loggers: Quiet HTTP client libraries to WARNING
    """
    level_name = level or settings.log_level
    format_type = (log_format or settings.log_format).lower()

    if format_type == "json":
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(fmt=DEFAULT_TEXT_FORMAT, datefmt=DEFAULT_DATE_FORMAT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(_get_log_level(level_name))
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    if suppress_noisy_loggers:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured: level={level_name}, format={format_type}"
    )


def _get_log_level(level_str: str) -> int:
    """
    Convert a level name to its logging constant.

    Raises:
        ValueError: Unknown level name
    """
    level = logging.getLevelName(level_str.upper().strip())
    if not isinstance(level, int):
        raise ValueError(
            f"Invalid log level: '{level_str}'. "
            f"Valid levels are: DEBUG, INFO, WARNING, ERROR, CRITICAL"
        )
    return level

