"""Structured logging for the MEP portal backend (JSON in production, text locally)."""
import logging
import json
import sys
from datetime import datetime, timezone

SERVICE_NAME = "mep-portal"

# LogRecord extras promoted to top-level keys; None values are omitted
_EXTRA_FIELDS = (
    "calculation_id", "project_id", "request_id", "stage", "duration_ms",
    "http_method", "http_path", "http_status",
)

_QUIET_LOGGERS = ("uvicorn.access", "httpcore", "httpx", "sqlalchemy.engine", "asyncpg")


def _extras(record: logging.LogRecord) -> dict:
    return {
        name: getattr(record, name)
        for name in _EXTRA_FIELDS
        if getattr(record, name, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line, stamped with the record's creation time."""
    def format(self, record):
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "service": SERVICE_NAME,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        log_entry.update(_extras(record))
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable lines for local runs; extras trail the message as key=value."""
    def __init__(self):
        super().__init__("%(asctime)s [%(name)s] %(levelname)s: %(message)s")

    def format(self, record):
        line = super().format(record)
        extras = _extras(record)
        if extras:
            line += " | " + " ".join(f"{k}={v}" for k, v in extras.items())
        return line


def setup_logging(level: str = "INFO", json_output: bool = True):
    """Configure the root logger once at startup (LOG_LEVEL / LOG_FORMAT)."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if json_output else TextFormatter())
    root.handlers = [handler]

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
