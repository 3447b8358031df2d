"""Structured logging configuration using structlog.

Console output while developing, JSON lines when ``LOG_JSON`` is set.
Modules keep using ``logging.getLogger(__name__)``; the stdlib records are
rendered through the same structlog processor chain.

Example:
    >>> from app.logging_config import setup_logging
    >>> setup_logging()
    >>> logging.getLogger(__name__).info("Attendance cron finished")
"""

import logging
import sys
from typing import List

import structlog
from structlog.types import Processor

from app.config import LOG_LEVEL, LOG_JSON


def setup_logging(level: str = LOG_LEVEL, json_logs: bool = LOG_JSON) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        level: Log level name (DEBUG, INFO, ...).
        json_logs: Render JSON instead of colored console output.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_logs:
        renderer = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    # Third-party noise
    for logger_name in ["uvicorn.access", "apscheduler", "pymongo", "motor", "httpx"]:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("app").setLevel(log_level)


def bind_context(**kwargs) -> None:
    """Bind request-scoped values (request_id, user_id) to subsequent log calls."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
