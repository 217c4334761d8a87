"""Logging setup for the practice engine.

Production writes one JSON object per line; development writes colored,
human-readable lines. Either way, engine context passed through ``extra=``
(session id, item, event sequence, achievement id) is kept on the output so a
single session's history can be followed through the log:

    >>> logger.info("Achievement unlocked", extra={"session_id": "ps_1", "achievement_id": "first_steps"})
"""
import copy
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from practice_engine.config import settings
from practice_engine.constants import DEFAULT_LOG_LEVEL

CONTEXT_FIELDS = ("session_id", "item", "sequence", "achievement_id", "request_id")
"""Extra attributes copied from log records into formatted output."""

_installed_handler: Optional[logging.Handler] = None


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    """Engine context attached to ``record``, in CONTEXT_FIELDS order."""
    return {
        name: getattr(record, name)
        for name in CONTEXT_FIELDS
        if getattr(record, name, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, for log shipping in production."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        payload.update(record_context(record))

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        # Item keys are arbitrary strings; keep them readable
        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Colored console output with engine context appended, for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy so other handlers never see the color codes
        record = copy.copy(record)
        color = self.COLORS.get(record.levelname, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"

        line = super().format(record)
        context = record_context(record)
        if context:
            line += " [" + " ".join(f"{key}={value}" for key, value in context.items()) + "]"
        return line


def setup_logging(log_level: str = None) -> None:
    """Install the engine's handler on the root logger.

    Calling this again replaces the previously installed handler instead of
    stacking a second one.

    Args:
        log_level: Level name (DEBUG, INFO, ...). Defaults to DEBUG in
            development and DEFAULT_LOG_LEVEL elsewhere.
    """
    global _installed_handler

    if log_level is None:
        log_level = "DEBUG" if settings.is_development else DEFAULT_LOG_LEVEL
    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    if settings.is_production:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ColoredFormatter(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))

    root_logger = logging.getLogger()
    if _installed_handler is not None:
        root_logger.removeHandler(_installed_handler)
    root_logger.addHandler(handler)
    root_logger.setLevel(numeric_level)
    _installed_handler = handler

    # Per-request access lines and SQL echo drown out session events
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        f"Logging configured at {log_level.upper()} "
        f"({'JSON' if settings.is_production else 'colored'} output, environment={settings.ENVIRONMENT})"
    )


def get_logger(name: str) -> logging.Logger:
    """Logger for ``name``; pass engine context through ``extra=``."""
    return logging.getLogger(name)
