"""Structured logging configuration."""

import logging
import sys
from typing import Optional

import structlog
from structlog.processors import JSONRenderer, TimeStamper, add_log_level
from structlog.stdlib import add_logger_name

from app.core.config import settings

# Libraries that log every statement or connection at INFO
NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncpg")


def _renderer():
    if settings.LOG_FORMAT == "json":
        return JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def setup_logging(level: Optional[str] = None) -> None:
    """Route structlog through the stdlib root logger at ``level`` (default LOG_LEVEL)."""
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper())

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        add_log_level,
        add_logger_name,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        TimeStamper(fmt="iso", utc=True),
        structlog.processors.dict_tracebacks,
        _renderer(),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    quiet_level = logging.INFO if settings.DATABASE_ECHO else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    structlog.contextvars.bind_contextvars(service=settings.SERVICE_NAME)
