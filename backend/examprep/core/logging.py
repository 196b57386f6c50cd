"""Structured JSON logging with per-request and per-job context."""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from pythonjsonlogger import jsonlogger

from examprep.core.config import settings

_log_context: ContextVar[dict[str, Any]] = ContextVar("examprep_log_context", default={})


@contextmanager
def bind_log_context(**fields: Any) -> Iterator[None]:
    """Attach fields (request_id, job_key, ...) to every record logged inside the block."""
    token = _log_context.set({**_log_context.get(), **fields})
    try:
        yield
    finally:
        _log_context.reset(token)


class SessionEngineJsonFormatter(jsonlogger.JsonFormatter):
    """One JSON object per record: the event name plus bound context and extras."""

    def add_fields(self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        for key, value in _log_context.get().items():
            log_record.setdefault(key, value)

        log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["env"] = settings.ENV
        # Services log snake_case event names as the message
        log_record["event"] = log_record.pop("message", None) or record.getMessage()


def setup_logging() -> None:
    """Route all logging to stdout as JSON. Safe to call more than once."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        SessionEngineJsonFormatter(
            "%(timestamp)s %(level)s %(logger)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    )
    root_logger.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.DB_ECHO else logging.WARNING
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
