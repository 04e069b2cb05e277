"""
Logging setup.

Services log through structlog with event names and key/value context;
the storage layer uses the standard library logger. Both end up on the
same root handler.
"""

import logging
import sys

import structlog

from core.config import settings

_configured = False


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """
    Configure stdlib logging and structlog.

    Safe to call more than once; later calls only adjust the level.

    Args:
        level: Log level name (defaults to settings.LOG_LEVEL)
        json_logs: Render JSON lines instead of console output
            (defaults to settings.LOG_JSON)
    """
    global _configured

    level_name = (level or settings.LOG_LEVEL).upper()
    log_level = getattr(logging, level_name, logging.INFO)
    render_json = settings.LOG_JSON if json_logs is None else json_logs

    if _configured:
        logging.getLogger().setLevel(log_level)
        return

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    renderer: structlog.types.Processor
    if render_json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True
