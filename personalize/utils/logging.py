"""structlog wiring for applications embedding the engine."""

import logging
import sys
from typing import Optional

import structlog

from ..config.settings import Settings, get_settings


def configure_logging(
    level: Optional[str] = None,
    fmt: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        level: Log level name; defaults to ``Settings.log_level``.
        fmt: ``"json"`` for machine-readable output, anything else renders
            for the console. Defaults to ``Settings.log_format``.
        settings: Settings instance to read defaults from.
    """
    settings = settings or get_settings()
    level_name = (level or settings.log_level).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    use_json = (fmt or settings.log_format).lower() == "json"

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)

    renderer = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer()
    )

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
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
