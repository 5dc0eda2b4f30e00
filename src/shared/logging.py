"""Structured logging setup for the Habitica MCP Gateway.

Uses structlog for consistent, machine-parseable log output.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import Processor

# Client-agent strings are cut to this length in access logs
USER_AGENT_LOG_LENGTH = 50


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON; otherwise, use colored console output
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    if json_output:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # uvicorn and httpx log through the standard library
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
    )


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically module name)
        **initial_context: Initial context values to bind to logger

    Returns:
        A bound structlog logger instance
    """
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


def truncate_user_agent(user_agent: Optional[str]) -> str:
    """Shorten a client-agent header for access logs."""
    if not user_agent:
        return "Unknown"
    return user_agent[:USER_AGENT_LOG_LENGTH]


def bind_context(**context: Any) -> None:
    """Bind context values to all loggers in the current context."""
    structlog.contextvars.bind_contextvars(**context)


def clear_context() -> None:
    """Clear all bound context values."""
    structlog.contextvars.clear_contextvars()
