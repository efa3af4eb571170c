"""
Structured logging configuration using structlog.

JSON lines in production (one object per event, easy to ship to a log
aggregator) and a colored console renderer everywhere else.

Usage:
    from inkwell.core.logging_config import get_logger

    logger = get_logger(__name__)
    logger.info("post created", post_id=12, slug="hello-world")

Output in production (JSON):
    {"event": "post created", "post_id": 12, "slug": "hello-world",
     "request_id": "req_...", "timestamp": "...", "level": "info"}
"""

import logging
import sys
from typing import Any

import structlog

from inkwell.core.config import settings

IS_TEST = "pytest" in sys.modules


def configure_logging() -> None:
    """Configure structlog processors for the current environment."""

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.is_production:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=not IS_TEST),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.INFO),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Route stdlib logging (uvicorn, sqlalchemy) to stdout as well
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.INFO,
    )

    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger, typically with ``__name__``."""
    return structlog.get_logger(name)


# Configure on import
configure_logging()
