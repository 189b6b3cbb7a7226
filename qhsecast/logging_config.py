"""
Structured logging setup.

Call configure_logging() once from the host process (service, worker or
script). Library modules only ever call structlog.get_logger(__name__).
"""

import logging
import sys
from typing import Optional

import structlog

from qhsecast.config import settings


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Configure structlog on top of the stdlib logging module."""
    level_name = (level or settings.log_level).upper()
    renderer = (
        structlog.processors.JSONRenderer()
        if (fmt or settings.log_format) == "json"
        else structlog.dev.ConsoleRenderer()
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
