# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging configuration for GradeFlow.

structlog events are routed through the standard library, so module loggers
created with logging.getLogger(__name__) and structlog loggers obey the same
per-logger levels. Output is JSON outside development and colored console
output in development.

Two channels are configured explicitly:
- gradeflow.audit: tenant access decisions. Kept at INFO whatever the
  application level, so granted decisions are never filtered out.
- sqlalchemy.engine: SQL statements, shown only when DB_ECHO is set.

Example:
    >>> from gradeflow.utils.logging import setup_logging, get_logger
    >>> from gradeflow.core.config import get_settings
    >>> setup_logging(get_settings())
    >>> logger = get_logger(__name__)
    >>> logger.info("grades.approved", school_id="s-1", updated_count=12)
"""

import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor

if TYPE_CHECKING:
    from gradeflow.core.config.settings import Settings

AUDIT_LOGGER = "gradeflow.audit"

# Event keys whose values never reach the log output.
REDACTED_KEYS = frozenset({"authorization", "token", "password", "secret_key"})

_QUIET_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "aiosqlite",
    "asyncio",
)


class ServiceContext:
    """Processor stamping every event with the service and environment."""

    def __init__(self, environment: str) -> None:
        self.environment = environment

    def __call__(self, logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("service", "gradeflow")
        event_dict.setdefault("environment", self.environment)
        return event_dict


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credential values bound to an event."""
    for key in event_dict.keys() & REDACTED_KEYS:
        event_dict[key] = "***"
    return event_dict


def setup_logging(settings: "Settings") -> None:
    """Configure structured logging for the application.

    Args:
        settings: Application settings providing log_level, environment,
            debug and db.echo.
    """
    # Determine log level
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    # Common processors used in all environments
    shared_processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        ServiceContext(settings.environment),
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.is_development or settings.debug:
        # Development: colored console output
        processors: list[Processor] = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]
    else:
        # Production: JSON output, one object per line
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]

    # Rendered events are handed to stdlib handlers as plain messages
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    # Set third-party loggers to WARNING to reduce noise
    for logger_name in _QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    # SQL statements follow DB_ECHO rather than the application level
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.db.echo else logging.WARNING
    )

    # Keep our loggers at configured level; access decisions at least INFO
    logging.getLogger("gradeflow").setLevel(log_level)
    logging.getLogger(AUDIT_LOGGER).setLevel(min(log_level, logging.INFO))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger for the given module name.

    Args:
        name: Usually __name__ of the calling module.

    Returns:
        A bound structlog logger instance.
    """
    return structlog.get_logger(name)


def bind_context(**kwargs: object) -> None:
    """Bind context variables to all subsequent log calls in this context.

    The auth middleware binds the acting user, role and school here.

    Args:
        **kwargs: Key-value pairs to bind to the logging context.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound context variables.

    Called at the end of every request so one request's actor never
    appears on the next request's events.
    """
    structlog.contextvars.clear_contextvars()
