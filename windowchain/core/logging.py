"""
Structured Logging Setup

Wires structlog on top of the standard library logging module so that
library loggers (structlog and logging.getLogger) share one output.
"""

import logging
import sys
from typing import Optional

import structlog

from .config import get_settings


def configure_logging(
    level: Optional[str] = None, json_logs: Optional[bool] = None
) -> None:
    """
    Configure structlog and the root stdlib logger.

    Args:
        level: Logging level name (defaults to LOG_LEVEL setting)
        json_logs: Render JSON lines instead of console output
            (defaults to LOG_JSON setting)
    """
    settings = get_settings()
    log_level = (level or settings.LOG_LEVEL).upper()
    render_json = settings.LOG_JSON if json_logs is None else json_logs

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level),
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if render_json
        else structlog.dev.ConsoleRenderer(colors=False)
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
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
