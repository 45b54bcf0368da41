"""Structured logging for the scheduler.

Logs go to stderr so that ``--format json`` output on stdout stays parseable.
Library callers that never call ``configure_logging`` still get structlog
routed through stdlib logging, so records follow the host application's
logging setup (or Python's last-resort stderr handler) instead of stdout.
"""
from __future__ import annotations

import logging
import logging.config
import sys

import structlog


def _configure_structlog() -> None:
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def configure_logging(log_level: str = "WARNING") -> structlog.stdlib.BoundLogger:
    """Configure structlog on top of stdlib logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    level = log_level.upper()

    _configure_structlog()

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"plain": {"format": "%(message)s"}},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "level": level,
                    "formatter": "plain",
                    "stream": sys.stderr,
                }
            },
            "loggers": {
                "princess_scheduler": {
                    "level": level,
                    "handlers": ["console"],
                    "propagate": False,
                }
            },
        }
    )

    logger = get_logger("princess_scheduler")
    logger.debug("Logging configured", level=level)
    return logger


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance, wiring structlog to stdlib on first use."""
    if not structlog.is_configured():
        _configure_structlog()
    return structlog.get_logger(name)
