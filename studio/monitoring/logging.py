"""Logging setup for the studio service and its scripts."""

from __future__ import annotations

import logging

from studio.config.settings import Settings, get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Per-request lines from the HTTP stack would log every model call twice.
_TRANSPORT_LOGGERS = ("httpx", "httpcore")


def configure_logging(settings: Settings | None = None) -> int:
    """Set up the root handler and quiet the HTTP transport loggers.

    Returns the numeric level applied to the ``studio`` logger.
    """

    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("studio").setLevel(level)

    transport_level = level if level <= logging.DEBUG else logging.WARNING
    for name in _TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)

    logging.getLogger(__name__).debug(
        "Logging configured for %s (model %s)",
        settings.environment,
        settings.gemini_image_model,
    )
    return level
