"""
Structured logging for the alignment chart service.

structlog with ISO timestamps and log level. LOG_FORMAT=json renders one JSON
object per line, LOG_FORMAT=console renders human-readable output. Modules
call get_logger(__name__) and log snake_case event names with key/value
context:

    logger = get_logger(__name__)
    logger.info("analysis_cache_hit", cache_key=key)
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from alignment_chart.config import settings


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Configure structlog. Safe to call again (e.g. from app startup)."""
    level_name = (level or settings.LOG_LEVEL).upper()
    level_value = getattr(logging, level_name, logging.INFO)
    fmt = (fmt or settings.LOG_FORMAT).strip().lower()

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> structlog.BoundLogger:
    """Return a structured logger bound with the module name."""
    return structlog.get_logger(name).bind(logger=name)
