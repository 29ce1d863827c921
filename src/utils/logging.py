# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging for report builds.

Engine modules log through the standard library (``logging.getLogger``
with %-style arguments). setup_logging() installs a structlog
ProcessorFormatter on the root handler, so those records are rendered by
the same processor chain as structlog loggers and pick up the context
bound with bind_context(): every line of one report build carries the
report kind and its scope ids.

Rendering is a console renderer in development or debug mode and JSON
everywhere else.

Example:
    >>> from src.utils.logging import setup_logging, bind_context, clear_context
    >>> setup_logging(get_settings())
    >>> bind_context(report="course", course_id="c-1")
    >>> logging.getLogger("src.domains.reporting").info("Built course report")
    >>> clear_context()
"""

import logging
import sys
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from src.core.config.settings import Settings

# Loggers of the data-access stack that only matter when they warn.
QUIET_LOGGERS = ("sqlalchemy", "sqlalchemy.engine", "sqlalchemy.pool", "asyncpg", "asyncio")

_HANDLER_NAME = "grading-engine"


def _renderer(settings: "Settings") -> Processor:
    if settings.is_development or settings.debug:
        return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    return structlog.processors.JSONRenderer(sort_keys=True)


def setup_logging(settings: "Settings") -> None:
    """Route stdlib and structlog output through one processor chain.

    Calling it again replaces the handler installed by the previous call.

    Args:
        settings: Application settings providing log_level, debug and
            environment.
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            _renderer(settings),
        ],
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("src").setLevel(level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Structured logger for code that logs key-value events."""
    return structlog.get_logger(name)


def bind_context(**kwargs: object) -> None:
    """Attach key-value pairs to every log line of the current task.

    Example:
        >>> bind_context(report="course", course_id="c-1")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop everything bound with bind_context() in the current task."""
    structlog.contextvars.clear_contextvars()
