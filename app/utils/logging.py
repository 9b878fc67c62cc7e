"""Structured Logging Configuration.

This module provides structured logging with JSON output and context binding
on top of structlog. Outputs JSON format for production log aggregation and a
readable console format for local development.

Configuration:
- JSON output format (LOG_JSON=true, default)
- Context binding support (job IDs, stage names, etc.)
- Log levels: DEBUG, INFO, WARNING, ERROR, CRITICAL (LOG_LEVEL)

Usage:
    from app.utils.logging import get_logger

    log = get_logger(__name__)
    log.info("job_enqueued", job_id=job_id, pending=3)
"""

import logging
from typing import Any

import structlog


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    """Configure structlog processors and rendering.

    Called once from the application lifespan. Safe to call again (tests,
    reloads); the latest call wins.

    Args:
        level: Minimum log level name (e.g. "INFO", "DEBUG")
        json_output: Render JSON lines when True, colored console output otherwise
    """
    level_value = logging.getLevelName(level.upper())
    if not isinstance(level_value, int):
        level_value = logging.INFO

    renderer: Any = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> Any:
    """Get a structured logger instance for the given module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Lazy structlog logger with the module name bound as ``logger_name``.
        The proxy resolves against the configuration current at first use,
        so module-level loggers pick up ``configure_logging`` from the lifespan.
    """
    return structlog.get_logger(logger_name=name)
