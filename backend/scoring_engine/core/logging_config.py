"""
Logging setup for the scoring engine.

Records go to stdout. Production emits one JSON object per line so the
identifiers passed through ``extra=`` (session, question, competency) stay
queryable; every other environment gets a single-line text format.
"""
import json
import logging
import logging.config
import sys
from datetime import datetime, timezone
from typing import Any, Dict

from scoring_engine.core.config import settings

PACKAGE_LOGGER = "scoring_engine"

# Copied from ``extra=`` onto JSON entries when present on the record
STRUCTURED_FIELDS = (
    "session_id",
    "question_id",
    "competency_id",
    "goal",
    "duration_ms",
    "event_data",
)

# Third-party loggers held at WARNING whatever the configured level
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool")

TEXT_FORMAT = "%(asctime)s %(levelname)-8s [%(name)s] %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with the structured identifiers as keys."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in STRUCTURED_FIELDS:
            if hasattr(record, field):
                entry[field] = getattr(record, field)

        if record.levelno >= logging.ERROR:
            entry["source"] = f"{record.pathname}:{record.lineno}"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def build_logging_config(log_level: int, json_output: bool) -> Dict[str, Any]:
    """Build the ``dictConfig`` mapping for the given level and output format."""
    loggers: Dict[str, Any] = {
        PACKAGE_LOGGER: {"level": log_level, "handlers": ["stdout"], "propagate": False},
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {
            "level": max(log_level, logging.WARNING),
            "handlers": ["stdout"],
            "propagate": False,
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "text": {"format": TEXT_FORMAT, "datefmt": "%H:%M:%S"},
            "json": {"()": JSONFormatter},
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "level": log_level,
                "formatter": "json" if json_output else "text",
            },
        },
        "root": {"level": log_level, "handlers": ["stdout"]},
        "loggers": loggers,
    }


def setup_logging() -> None:
    """Apply logging configuration from ``settings.LOG_LEVEL`` and ``settings.ENV``."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.config.dictConfig(
        build_logging_config(log_level, json_output=settings.ENV == "production")
    )
