"""Structured logging setup.

The engine logs through ``structlog.get_logger()`` everywhere; this module
only decides how those events are rendered.
"""

import logging
from typing import TYPE_CHECKING

import structlog


if TYPE_CHECKING:
    from rolegate.config import Settings


def configure_logging(settings: "Settings") -> None:
    """Configure structlog for the process.

    Production gets JSON lines, everything else the console renderer.

    Args:
        settings: Engine settings (log level and environment)
    """
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            (
                structlog.processors.JSONRenderer()
                if settings.is_production
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
