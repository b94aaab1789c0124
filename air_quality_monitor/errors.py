"""Error types raised while loading air quality data."""

from __future__ import annotations

__all__ = [
    "DEFAULT_ERROR_MESSAGE",
    "LoadError",
    "FetchTimeoutError",
    "HttpStatusError",
    "NetworkError",
    "MalformedResponseError",
    "CacheCorruptError",
    "error_message",
]

DEFAULT_ERROR_MESSAGE = "Unknown error while loading air quality data"


class LoadError(RuntimeError):
    """Base class for a failed fetch attempt."""


class FetchTimeoutError(LoadError):
    def __init__(self, timeout_ms: float) -> None:
        super().__init__(f"Timed out after {timeout_ms:g} ms waiting for the server")
        self.timeout_ms = timeout_ms


class HttpStatusError(LoadError):
    def __init__(self, status_code: int, reason: str = "") -> None:
        super().__init__(f"HTTP error: {status_code} {reason}".rstrip())
        self.status_code = status_code
        self.reason = reason


class NetworkError(LoadError):
    """Request level failure (DNS, refused connection, undecodable body...)."""


class MalformedResponseError(LoadError):
    """Response body does not carry a ``measurements`` list."""


class CacheCorruptError(ValueError):
    """Stored cache text could not be parsed into an entry."""


def error_message(exc: BaseException) -> str:
    """Return the message surfaced to callers for a terminal failure."""
    return str(exc) or DEFAULT_ERROR_MESSAGE
