"""
Logging

One loguru logger for the whole service, writing JSON lines to stdout.
Records from the standard ``logging`` module (uvicorn, httpx, google-genai)
are bridged into it so every line has the same shape.
"""

# pyright: basic

import logging

from asgi_correlation_id.context import correlation_id
from loguru import logger

from flowstate.core.config import settings
from flowstate.schema.log_entry import LogEntry

__all__ = (
    "StdlibBridge",
    "configure_logging",
    "log_serializer",
    "logger",
    "uvicorn_log_config",
)

LOG_LEVEL = "DEBUG" if settings.DEBUG else "INFO"


class StdlibBridge(logging.Handler):
    """Re-emit a stdlib ``LogRecord`` through loguru, keeping the caller location."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip the frames that belong to the logging module itself
        frame, depth = logging.currentframe(), 2
        while frame.f_back and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


uvicorn_log_config = {
    "version": 1,
    "disable_existing_loggers": False,
    "handlers": {
        "loguru": {"()": "flowstate.core.log.StdlibBridge"},
    },
    "loggers": {
        name: {"handlers": ["loguru"], "level": LOG_LEVEL, "propagate": False}
        for name in ("uvicorn", "uvicorn.error", "uvicorn.access")
    },
}


def _truncate(message: str, limit: int) -> str:
    return message if len(message) <= limit else message[: limit - 3] + "..."


def log_serializer(record) -> str:
    """
    One JSON line per loguru record.

    Values bound with ``logger.bind``/``logger.contextualize`` land under
    ``context``; the request correlation id gets its own field.
    """
    entry = LogEntry(
        asctime=record["time"],
        levelname=record["level"].name,
        logger=record["name"] or "",
        correlation_id=correlation_id.get() or None,
        message=_truncate(record["message"], settings.LOG_MESSAGE_MAX_LEN),
        context={k: str(v) for k, v in record["extra"].items()},
    )
    return entry.model_dump_json(exclude_none=True)


def _sink(message) -> None:
    print(log_serializer(message.record), flush=True)


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Install the JSON sink and route stdlib logging through loguru."""
    logger.remove()
    logger.add(_sink, level=level)
    logging.basicConfig(handlers=[StdlibBridge()], level=logging.INFO, force=True)


configure_logging()
