"""
Logging setup for the Mintchat API.

Production emits one JSON object per line; debug mode prints a compact,
human-readable line. Messaging context passed through ``extra=`` (wallet,
conversation, live topic, request fields) is promoted to top-level JSON keys
so log search can filter by participant or conversation.

Call setup_logging() once at app startup (in lifespan).
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from mintchat.core.config import get_settings

# extra= keys copied into JSON records when present
CONTEXT_FIELDS = (
    "wallet",
    "conversation_id",
    "notification_id",
    "topic",
    "method",
    "path",
    "status_code",
    "duration_ms",
)

# Client libraries that log every request or frame at INFO
QUIET_LOGGERS = (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "hpack",
    "h2",
    "h11",
    "websockets",
    "postgrest",
    "supabase",
)

DEBUG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [%(correlation_id)s]: %(message)s"


class CorrelationIDFilter(logging.Filter):
    """Stamps each record with the correlation id of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        # Import here to avoid circular imports
        from mintchat.core.middleware import get_correlation_id

        record.correlation_id = get_correlation_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """Structured JSON log formatter for production."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id and correlation_id != "-":
            entry["correlation_id"] = correlation_id

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def _build_handler(debug: bool, level: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIDFilter())
    if debug:
        handler.setFormatter(logging.Formatter(DEBUG_FORMAT, datefmt="%H:%M:%S"))
    else:
        handler.setFormatter(JSONFormatter())
    return handler


def setup_logging(level: Optional[str] = None) -> None:
    """Install the single stdout handler on the root logger."""
    settings = get_settings()
    log_level = level or ("DEBUG" if settings.debug else "INFO")

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(_build_handler(settings.debug, log_level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
