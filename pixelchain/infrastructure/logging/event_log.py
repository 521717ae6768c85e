from __future__ import annotations

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from typing import Any, Protocol

from pixelchain.domain.entities.log_event import LogEvent
from pixelchain.infrastructure.config import Settings

EVENT_LOGGER = "pixelchain.events"


class LogSink(Protocol):
    async def log(self, event: LogEvent) -> None: ...


class JSONFormatter(logging.Formatter):
    """One JSON object per line. Pipeline events are written as-is."""

    def format(self, record: logging.LogRecord) -> str:
        event = getattr(record, "event", None)
        if isinstance(event, dict):
            return json.dumps(event, ensure_ascii=False, default=str)
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False, default=str)


class EventLineFormatter(logging.Formatter):
    """Human readable line for console output."""

    def format(self, record: logging.LogRecord) -> str:
        line = getattr(record, "event_line", None)
        if line:
            return line
        return super().format(record)


class EventLogSink:
    """Writes LogEvents through the stdlib logging tree.

    Handlers take their own lock around emit, so concurrent requests only
    ever append whole lines.
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(EVENT_LOGGER)

    async def log(self, event: LogEvent) -> None:
        level = logging.ERROR if event.level == "error" else logging.INFO
        self._logger.log(
            level,
            event.message or f"{event.endpoint} {event.result}",
            extra={"event": event.to_dict(), "event_line": event.to_line()},
        )


def setup_logging(settings: Settings) -> None:
    """Console plus rotating JSON file under ``settings.log_dir``."""
    os.makedirs(settings.log_dir, exist_ok=True)
    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JSONFormatter},
            "line": {
                "()": EventLineFormatter,
                "fmt": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json" if settings.env == "production" else "line",
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "json",
                "filename": os.path.join(settings.log_dir, "app.log"),
                "maxBytes": 10485760,  # 10MB
                "backupCount": 5,
            },
        },
        "loggers": {
            "pixelchain": {
                "handlers": ["console", "file"],
                "level": settings.log_level,
                "propagate": False,
            },
        },
        "root": {"handlers": ["console"], "level": "WARNING"},
    }
    logging.config.dictConfig(config)
