"""Structured logging configuration for BorAI."""

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH

# Client libraries log every request at INFO; one line per streamed turn is enough
QUIET_LOGGERS = ("httpx", "httpcore", "anthropic", "aiosqlite")

TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s%(context_suffix)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with turn/session context inlined."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }

        # extra={"context": {"session_id": ..., "message_id": ...}}
        context = getattr(record, "context", None)
        if context:
            log_data.update({k: v for k, v in context.items() if k not in log_data})

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Human-readable console lines ending in ``key=value`` context."""

    def __init__(self):
        super().__init__(TEXT_FORMAT)

    def format(self, record: logging.LogRecord) -> str:
        context = getattr(record, "context", None) or {}
        record.context_suffix = "".join(f" {k}={v}" for k, v in context.items())
        return super().format(record)


def setup_logging(
    log_level: str | None = None,
    log_file: str | Path | None = None,
    console_format: str | None = None,
) -> None:
    """
    Configure the root logger.

    Args:
        log_level: Defaults to LOG_LEVEL env var or INFO.
        log_file: JSON log file, rotated at 10 MB. Defaults to 04_logs/app.log.
        console_format: "json" or "text" for stderr. Defaults to LOG_FORMAT
                        env var or json.
    """
    log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log_path = Path(log_file or DEFAULT_LOG_PATH)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    console_format = (console_format or os.getenv("LOG_FORMAT", "json")).lower()
    if console_format not in ("json", "text"):
        raise ValueError(f"Unknown log format: {console_format}")

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": JSONFormatter},
                "text": {"()": TextFormatter},
            },
            "handlers": {
                "file": {
                    "class": "logging.handlers.RotatingFileHandler",
                    "filename": str(log_path),
                    "maxBytes": 10 * 1024 * 1024,
                    "backupCount": 5,
                    "formatter": "json",
                    "encoding": "utf-8",
                },
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": console_format,
                    "stream": "ext://sys.stderr",
                },
            },
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
            "root": {"level": log_level, "handlers": ["file", "console"]},
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass ``extra={"context": {...}}`` for turn identifiers."""
    return logging.getLogger(name)
