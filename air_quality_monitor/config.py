"""Central configuration for air_quality_monitor."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

_ENV_PREFIX = "AIRQ_"

DEFAULT_API_URL = "http://api.airelimpio.ec/v1/measurements"
DEFAULT_CACHE_KEY = "airQualityCache"
DEFAULT_CACHE_FILE = "~/.cache/air_quality_monitor/cache.json"
DEFAULT_CACHE_MAX_AGE_MS = 600_000  # 10 minutes
DEFAULT_MAX_RETRIES = 2
DEFAULT_INITIAL_DELAY_MS = 1000
DEFAULT_FETCH_TIMEOUT_MS = 5000


def _env(name: str, default: str) -> str:
    return os.environ.get(f"{_ENV_PREFIX}{name}") or default


def _env_int(name: str, default: int) -> int:
    """Read an integer from the environment, falling back on bad input.

    Example:
        >>> os.environ["AIRQ_MAX_RETRIES"] = "nope"
        >>> _env_int("MAX_RETRIES", 2)
        2
    """
    raw = _env(name, str(default)).strip()
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s%s=%r, using %d", _ENV_PREFIX, name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = _env(name, str(default)).strip()
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid %s%s=%r, using %s", _ENV_PREFIX, name, raw, default)
        return default


@dataclass(frozen=True)
class Settings:
    """Configuration settings for air_quality_monitor.

    All settings are loaded from ``AIRQ_*`` environment variables with the
    defaults the loader was designed around.
    """

    API_URL: str
    CACHE_KEY: str
    CACHE_FILE: str
    CACHE_MAX_AGE_MS: float
    MAX_RETRIES: int
    INITIAL_DELAY_MS: float
    FETCH_TIMEOUT_MS: float
    LOG_LEVEL: str


def _read_settings() -> Settings:
    """Read all configuration from environment variables.

    Returns:
        Settings object with all configuration values.

    Note:
        Invalid numeric values fall back to the defaults. A negative retry
        count is clamped to zero.
    """
    max_retries = max(0, _env_int("MAX_RETRIES", DEFAULT_MAX_RETRIES))
    return Settings(
        API_URL=_env("API_URL", DEFAULT_API_URL).strip(),
        CACHE_KEY=_env("CACHE_KEY", DEFAULT_CACHE_KEY),
        CACHE_FILE=os.path.expanduser(_env("CACHE_FILE", DEFAULT_CACHE_FILE)),
        CACHE_MAX_AGE_MS=_env_float("CACHE_MAX_AGE_MS", DEFAULT_CACHE_MAX_AGE_MS),
        MAX_RETRIES=max_retries,
        INITIAL_DELAY_MS=_env_float("INITIAL_DELAY_MS", DEFAULT_INITIAL_DELAY_MS),
        FETCH_TIMEOUT_MS=_env_float("FETCH_TIMEOUT_MS", DEFAULT_FETCH_TIMEOUT_MS),
        LOG_LEVEL=_env("LOG_LEVEL", "INFO").upper(),
    )


settings = _read_settings()


def validate_settings(current: Settings | None = None) -> list[str]:
    """Log warnings for configuration that will make every load fail.

    Returns:
        The list of problems found (empty when the configuration looks sane).
    """
    s = current or settings
    problems: list[str] = []
    if not s.API_URL:
        problems.append("AIRQ_API_URL is empty")
    elif urlparse(s.API_URL).scheme not in {"http", "https"}:
        problems.append(f"AIRQ_API_URL has unsupported scheme: {s.API_URL}")
    if s.FETCH_TIMEOUT_MS <= 0:
        problems.append("AIRQ_FETCH_TIMEOUT_MS must be positive")
    if s.CACHE_MAX_AGE_MS <= 0:
        problems.append("AIRQ_CACHE_MAX_AGE_MS <= 0; cache will never be fresh")
    for problem in problems:
        logger.warning(problem)
    return problems


# Exported constants
API_URL: str = settings.API_URL
MAX_RETRIES: int = settings.MAX_RETRIES
INITIAL_DELAY_MS: float = settings.INITIAL_DELAY_MS
FETCH_TIMEOUT_MS: float = settings.FETCH_TIMEOUT_MS
