"""Logging helpers for air_quality_monitor
"""
import logging

from . import config

PACKAGE_LOGGER = "air_quality_monitor"
_HTTP_LOGGERS = ("httpx", "httpcore")


def setup_logging(level_name: str | None = None) -> int:
    """Configure the root handler and the loader's own loggers.

    Returns:
        The numeric level applied to the package logger.
    """
    level_name = (level_name or config.settings.LOG_LEVEL).upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter(
                fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root.addHandler(handler)
    root.setLevel(level)
    logging.getLogger(PACKAGE_LOGGER).setLevel(level)

    # Per-request lines from httpx only show up when debugging the fetcher.
    http_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)
    return level


__all__ = ["PACKAGE_LOGGER", "setup_logging"]
