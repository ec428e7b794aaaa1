"""
Structured logging setup.

Every module grabs its logger with ``get_logger(__name__)`` and logs
key-value events::

    logger = get_logger(__name__)
    logger.info("Version stored", version="thumb", duration_ms=12)

``setup_logging()`` is optional for library users; without it structlog's
defaults print to stdout.
"""

from __future__ import annotations

import logging
import sys

import structlog

from attache.core.config import settings


def setup_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """
    Configure structlog and the stdlib root logger once at startup.

    Args:
        level: Log level name.  Defaults to ``settings.LOG_LEVEL``.
        json_logs: Render JSON lines instead of the console renderer.
                   Defaults to True outside development.
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    if json_logs is None:
        json_logs = settings.APP_ENV != "development"

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger for the given module name."""
    return structlog.get_logger(name)
