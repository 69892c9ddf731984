"""
Logging configuration using structlog for structured diagnostic logging.

User-facing progress goes through the injectable logger in
``lint_staged.utils.status_reporter``. This module sets up the diagnostic
channel used with ``--debug``.
"""

import logging
import sys

import structlog


def configure_logging(log_level: str = "WARNING") -> None:
    """Configure structured logging with console output on stderr.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(log_level.upper())),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def ensure_logging_configured(debug: bool = False) -> None:
    """Configure logging unless the host application already did."""
    if debug:
        configure_logging("DEBUG")
    elif not structlog.is_configured():
        configure_logging("WARNING")
