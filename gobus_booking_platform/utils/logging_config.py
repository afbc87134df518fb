"""
Logging setup: console and rotating file handlers, request correlation,
credential masking and an optional JSON line format.
"""

import contextvars
import json
import logging
import logging.config
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

NO_REQUEST_ID = "no-request-id"
MASK = "***MASKED***"

# Set by the request logging middleware for the duration of a request
request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default=NO_REQUEST_ID)

TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d [%(request_id)s] %(message)s"

# Third-party loggers and the level they are capped at
LIBRARY_LEVELS = {
    "uvicorn": "INFO",
    "uvicorn.access": "INFO",
    "sqlalchemy.engine": "WARNING",
    "redis": "WARNING",
    "celery": "INFO",
}

ROTATE_BYTES = 10 * 1024 * 1024


def _file_handler(filename: str, level: str, formatter: str, backups: int) -> Dict[str, Any]:
    Path(filename).parent.mkdir(parents=True, exist_ok=True)
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": formatter,
        "filename": filename,
        "maxBytes": ROTATE_BYTES,
        "backupCount": backups,
        "filters": ["request_id", "sensitive_data"],
    }


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    enable_json_logging: bool = False,
) -> None:
    """
    Configure application and library loggers.

    Args:
        log_level: Level for application loggers and the root logger
        log_file: Also write to this rotating file, with errors split into ``*_errors.log``
        enable_json_logging: Emit one JSON object per line instead of text
    """
    formatter = "json" if enable_json_logging else "text"

    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": formatter,
            "stream": sys.stdout,
            "filters": ["request_id", "sensitive_data"],
        }
    }
    if log_file:
        handlers["file"] = _file_handler(log_file, log_level, formatter, backups=5)
        handlers["error_file"] = _file_handler(
            log_file.replace(".log", "_errors.log"), "ERROR", formatter, backups=10
        )

    shared: List[str] = [name for name in handlers if name != "error_file"]
    loggers = {
        name: {"level": level, "handlers": list(shared), "propagate": False}
        for name, level in LIBRARY_LEVELS.items()
    }
    loggers["gobus_booking_platform"] = {
        "level": log_level,
        "handlers": list(handlers),
        "propagate": False,
    }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "text": {"format": TEXT_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
            "json": {"()": JSONFormatter},
        },
        "filters": {
            "request_id": {"()": RequestIDFilter},
            "sensitive_data": {"()": SensitiveDataFilter},
        },
        "handlers": handlers,
        "loggers": loggers,
        "root": {"level": log_level, "handlers": shared},
    })


class RequestIDFilter(logging.Filter):
    """Stamps records with the ID of the request being served."""

    def filter(self, record):
        if not getattr(record, "request_id", None):
            record.request_id = request_id_var.get()
        return True


class SensitiveDataFilter(logging.Filter):
    """Masks bearer tokens in messages and credential keys in structured extras."""

    SENSITIVE_KEYS = {
        "password", "token", "secret", "authorization", "cookie",
        "access_token", "refresh_token", "smtp_password",
    }

    JWT_PATTERN = re.compile(r"\beyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+\b")

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self.JWT_PATTERN.sub(MASK, record.msg)
        for key, value in list(vars(record).items()):
            if isinstance(value, dict):
                setattr(record, key, self.mask(value))
        return True

    def mask(self, data):
        if isinstance(data, dict):
            return {
                key: MASK if str(key).lower() in self.SENSITIVE_KEYS else self.mask(value)
                for key, value in data.items()
            }
        if isinstance(data, (list, tuple)):
            return type(data)(self.mask(item) for item in data)
        return data


class JSONFormatter(logging.Formatter):
    """One JSON object per record. Non-standard record attributes go under ``extra``."""

    STANDARD_ATTRIBUTES = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
        "message", "request_id", "taskName",
    }

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", NO_REQUEST_ID),
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {key: value for key, value in vars(record).items() if key not in self.STANDARD_ATTRIBUTES}
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str, ensure_ascii=False)


def log_business_event(event_type: str, details: Dict[str, Any], user_id: Optional[str] = None) -> None:
    """Record a booking lifecycle event on the ``gobus_booking_platform.business`` logger."""
    logging.getLogger("gobus_booking_platform.business").info(
        f"Business event: {event_type}",
        extra={"event_type": event_type, "user_id": user_id, "event_details": details},
    )
