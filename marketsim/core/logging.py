"""Structured logging setup built on structlog.

Every module obtains its logger through :func:`get_logger` and logs
snake_case event names with keyword fields::

    log = get_logger(__name__)
    log.info("order_filled", order_id=order.order_id, price=123.45)

:func:`setup_logging` is called once by entry points (scripts, the
simulator's console runner).  Libraries never configure logging themselves.
"""

from __future__ import annotations

import logging
import sys

import structlog


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog to print filtered, rendered events to stdout.

    Args:
        level: Minimum log level name (``"DEBUG"``, ``"INFO"``, ...).
        json_output: Render one JSON object per line instead of the
            coloured console format.
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        msg = f"Unknown log level: {level}"
        raise ValueError(msg)

    renderer: structlog.typing.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    """Return a structlog logger bound to *name*."""
    return structlog.get_logger(name)
