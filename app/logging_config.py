"""
Structured logging configuration using structlog.

Every module gets its logger through get_logger(__name__) and logs an
event name plus key/value context:

    logger.info("card_added", card_id=str(card.id), last4=card.last4)

Card numbers and CVVs are never passed to a logger. Only ids and the
last four digits are safe to log.
"""

import logging
import sys

import structlog

from app.config import settings


def configure_logging() -> None:
    """Configure stdlib logging and structlog for the application."""
    level = logging.getLevelName(settings.LOG_LEVEL.upper())

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer() if settings.LOG_JSON
            else structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        # Left off so structlog.testing.capture_logs sees every logger
        cache_logger_on_first_use=False,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=settings.APP_NAME)


def get_logger(name: str) -> structlog.typing.FilteringBoundLogger:
    """Get a structured logger bound to the given module name."""
    return structlog.get_logger(name)
