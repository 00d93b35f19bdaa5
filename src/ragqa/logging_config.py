"""Application logging configuration utilities."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

AUDIT_LOGGER_NAME = "ragqa.audit"


# Attributes every LogRecord carries; anything else came in through ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


class MinimalJSONFormatter(logging.Formatter):
    """One JSON object per record; dict messages become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry: dict[str, Any] = {
            "ts": created.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "module": record.name,
        }
        if isinstance(record.msg, dict):
            entry.update(record.msg)
        elif record.msg:
            entry["message"] = record.getMessage()
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        entry.update(
            (key, value) for key, value in vars(record).items() if key not in _RECORD_ATTRS
        )
        return json.dumps(entry, ensure_ascii=False, default=str)


def configure_logging(level: str = "INFO", *, audit_log_path: str | None = None) -> None:
    """Configure JSON logging on stderr.

    Audit events (ingests and queries) go to stderr as well unless
    *audit_log_path* names a file to append them to instead.
    """

    handlers: dict[str, dict[str, Any]] = {
        "default": {
            "class": "logging.StreamHandler",
            "formatter": "json",
        },
    }
    audit_handlers = ["default"]
    if audit_log_path:
        Path(audit_log_path).parent.mkdir(parents=True, exist_ok=True)
        handlers["audit_file"] = {
            "class": "logging.FileHandler",
            "filename": audit_log_path,
            "mode": "a",
            "encoding": "utf-8",
            "formatter": "json",
        }
        audit_handlers = ["audit_file"]

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": MinimalJSONFormatter}},
            "handlers": handlers,
            "root": {
                "level": level,
                "handlers": ["default"],
            },
            "loggers": {
                AUDIT_LOGGER_NAME: {
                    "level": "INFO",
                    "handlers": audit_handlers,
                    "propagate": False,
                },
                "httpx": {"level": "WARNING"},
                "pdfminer": {"level": "WARNING"},
            },
        }
    )


__all__ = ["AUDIT_LOGGER_NAME", "MinimalJSONFormatter", "configure_logging"]
