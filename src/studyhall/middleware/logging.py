"""Structured logging setup.

HTTP-edge code logs through structlog; service modules use stdlib
``logging``. Both end up on the root handler at ``settings.log_level``.
"""

import logging
import sys

import structlog

from studyhall.config import Settings

# Libraries whose INFO output is per-query or per-request noise.
_NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore")


def _add_environment(settings: Settings) -> structlog.types.Processor:
    def processor(_logger: object, _name: str, event_dict: dict) -> dict:
        event_dict.setdefault("service", "studyhall-api")
        event_dict.setdefault("environment", settings.environment)
        return event_dict

    return processor


def setup_logging(settings: Settings) -> None:
    """Render JSON in deployed environments, colored key/value output locally."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if settings.log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            _add_environment(settings),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(stream=sys.stdout, format="%(message)s", level=level)
    logging.getLogger().setLevel(level)
    if not settings.debug:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
