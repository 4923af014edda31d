"""
Structured logging for bomcalc.

One stdout handler on the root logger: JSON lines by default, a plain text
format when LOG_FORMAT=text. Resolver and request context (calculation id,
product id, request id, timings) travels as ``extra=`` fields and is lifted
into the JSON payload whenever a record carries it.
"""
import json
import logging
import sys
from datetime import datetime, timezone

# extra= keys copied into the JSON payload when present on a record
CONTEXT_FIELDS = (
    "calculation_id",
    "product_id",
    "request_id",
    "duration_ms",
    "http_method",
    "http_path",
    "http_status",
)

TEXT_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

# Third-party loggers capped at WARNING
QUIET_LOGGERS = ("uvicorn.access", "httpcore", "httpx", "aiosqlite")


class JSONFormatter(logging.Formatter):
    """One JSON object per log line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(level: str = "INFO", json_output: bool = True) -> logging.Handler:
    """Install the stdout handler on the root logger and return it."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers = [handler]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    return handler
