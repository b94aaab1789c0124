"""Measurements endpoint client with per-attempt timeout and backoff retry."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from . import config
from .errors import (
    FetchTimeoutError,
    HttpStatusError,
    LoadError,
    MalformedResponseError,
    NetworkError,
)
from .models.load_state import RetryState

__all__ = ["fetch_once", "fetch_with_retry"]

logger = logging.getLogger(__name__)

_HEADERS = {"Accept": "application/json"}

_sleep = asyncio.sleep


def _parse_payload(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as e:
        raise MalformedResponseError(f"Response body is not valid JSON: {e}") from e
    if not isinstance(payload, dict) or not isinstance(
        payload.get("measurements"), list
    ):
        raise MalformedResponseError(
            'Response does not contain a valid "measurements" list'
        )
    return payload


async def fetch_once(
    client: httpx.AsyncClient, url: str, timeout_ms: float
) -> dict[str, Any]:
    """Perform a single GET raced against ``timeout_ms``.

    On timeout the in-flight request is cancelled, so a late response is
    never observed.

    Raises:
        FetchTimeoutError: The timer fired before the response arrived.
        HttpStatusError: The server answered with a non-2xx status.
        NetworkError: The request failed in transport or while decoding.
        MalformedResponseError: The body lacks a ``measurements`` list.
    """
    try:
        response = await asyncio.wait_for(
            client.get(url, headers=_HEADERS), timeout=timeout_ms / 1000.0
        )
    except asyncio.TimeoutError as e:
        raise FetchTimeoutError(timeout_ms) from e
    except httpx.TimeoutException as e:
        raise FetchTimeoutError(timeout_ms) from e
    except httpx.RequestError as e:
        raise NetworkError(f"Network error: {e}") from e

    if not response.is_success:
        raise HttpStatusError(response.status_code, response.reason_phrase)
    return _parse_payload(response)


async def _fetch_loop(
    client: httpx.AsyncClient,
    url: str,
    max_retries: int,
    initial_delay_ms: float,
    timeout_ms: float,
) -> dict[str, Any]:
    retry = RetryState(
        attempts_remaining=max(0, max_retries), current_delay_ms=initial_delay_ms
    )
    attempt = 0
    while True:
        attempt += 1
        try:
            return await fetch_once(client, url, timeout_ms)
        except LoadError as e:
            if retry.attempts_remaining <= 0:
                logger.error("Fetch failed after %d attempt(s): %s", attempt, e)
                raise
            logger.warning(
                "Fetch attempt %d failed (%s); retrying in %g ms",
                attempt,
                e,
                retry.current_delay_ms,
            )
        await _sleep(retry.current_delay_ms / 1000.0)
        retry.attempts_remaining -= 1
        retry.current_delay_ms *= 2


async def fetch_with_retry(
    url: str | None = None,
    *,
    client: httpx.AsyncClient | None = None,
    max_retries: int | None = None,
    initial_delay_ms: float | None = None,
    timeout_ms: float | None = None,
) -> dict[str, Any]:
    """Fetch the measurements payload, retrying with exponential backoff.

    Attempts run strictly one after another. After a failed attempt the
    loop waits ``D``, ``2D``, ``4D``... before the next one, for at most
    ``max_retries`` retries. Every failure kind is retried the same way.

    Args:
        url: Endpoint URL. Defaults to the configured API URL.
        client: Optional shared client; a temporary one is opened otherwise.
        max_retries: Retries after the first attempt.
        initial_delay_ms: First backoff delay.
        timeout_ms: Upper bound on each attempt.

    Returns:
        The decoded JSON object, guaranteed to hold a ``measurements`` list.

    Raises:
        LoadError: The last attempt's failure once retries are exhausted.
    """
    url = url or config.API_URL
    max_retries = config.MAX_RETRIES if max_retries is None else max_retries
    if initial_delay_ms is None:
        initial_delay_ms = config.INITIAL_DELAY_MS
    timeout_ms = config.FETCH_TIMEOUT_MS if timeout_ms is None else timeout_ms

    if client is not None:
        return await _fetch_loop(client, url, max_retries, initial_delay_ms, timeout_ms)
    async with httpx.AsyncClient(timeout=timeout_ms / 1000.0) as owned:
        return await _fetch_loop(owned, url, max_retries, initial_delay_ms, timeout_ms)
