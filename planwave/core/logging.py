"""structlog setup shared by library users and the test suite."""

import logging
from typing import Optional

import structlog

from planwave.core.config import settings


def configure_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """
    Configure structlog on top of the stdlib logging module.

    Args:
        level: Log level name, defaults to settings.LOG_LEVEL
        fmt: "console" for human readable output or "json" for one JSON object per line,
            defaults to settings.LOG_FORMAT
    """
    level_name = (level or settings.LOG_LEVEL).upper()
    fmt = (fmt or settings.LOG_FORMAT).lower()

    logging.basicConfig(format="%(message)s", level=getattr(logging, level_name, logging.INFO))
    logging.getLogger("planwave").setLevel(level_name)

    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
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
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
