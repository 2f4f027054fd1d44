"""
Logging configuration for the ledger project.

Two output shapes:
- console: readable lines for local development (DEBUG=True)
- json: one JSON object per line for log shipping

Environment variables:
- LOG_FORMAT: "json" or "console" (default follows DEBUG)
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default INFO, DEBUG when DEBUG=True)
"""
import json
import logging
import os
from datetime import datetime, timezone

# LogRecord attributes that are not user supplied `extra` fields
_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime"}


def get_logging_config(debug: bool = False) -> dict:
    """Build the Django LOGGING dict."""
    log_level = os.environ.get("LOG_LEVEL", "DEBUG" if debug else "INFO")
    log_format = os.environ.get("LOG_FORMAT", "console" if debug else "json")

    if log_format == "json":
        formatter = {"()": "ledger_project.logging_config.JsonFormatter"}
    else:
        formatter = {
            "format": "[{asctime}] {levelname} {name} {message}",
            "style": "{",
        }

    app_logger = {"handlers": ["console"], "level": log_level, "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
            "null": {"class": "logging.NullHandler"},
        },
        "loggers": {
            "": {"handlers": ["console"], "level": log_level},
            "django": {"handlers": ["console"], "level": log_level, "propagate": False},
            "django.db.backends": {
                "handlers": ["console"] if debug else ["null"],
                "level": "DEBUG" if debug else "INFO",
                "propagate": False,
            },
            # ledger services log posting, voids, recurring runs, reconciliations
            "ledger_core": app_logger,
            "celery": app_logger,
        },
    }


class JsonFormatter(logging.Formatter):
    """
    Render a record as a JSON line: timestamp, level, logger, message,
    exception text when present and every `extra=` field under "extra".
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extras = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}
        if extras:
            entry["extra"] = extras

        # Decimal amounts and dates fall back to str()
        return json.dumps(entry, default=str)
