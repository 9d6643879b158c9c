"""
Logging configuration.

- Development: human-readable console output
- Production: JSON lines to stdout

LOG_FORMAT ("json" or "console") and LOG_LEVEL come from settings.
"""
import json
import logging
import logging.config
from datetime import datetime, timezone

from supplier_ledger.core.config import settings


class JsonFormatter(logging.Formatter):
    """One JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def get_logging_config(debug: bool = False, level: str = "", fmt: str = "") -> dict:
    """Build a dictConfig for the service loggers."""
    log_level = (level or ("DEBUG" if debug else "INFO")).upper()
    log_format = fmt or ("console" if debug else "json")

    formatters = {
        "console": {
            "format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        },
        "json": {
            "()": "supplier_ledger.core.logging_config.JsonFormatter",
        },
    }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": log_format if log_format in formatters else "console",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "supplier_ledger": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": False,
            },
            "uvicorn": {
                "handlers": ["console"],
                "level": "INFO",
                "propagate": False,
            },
        },
    }


def configure_logging() -> None:
    logging.config.dictConfig(
        get_logging_config(
            debug=settings.DEBUG,
            level=settings.LOG_LEVEL,
            fmt=settings.LOG_FORMAT,
        )
    )
