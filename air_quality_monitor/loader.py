"""Stale-while-revalidate loader for air quality measurements."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Awaitable, Callable

import httpx

from . import config
from .cache_store import JsonFileStore, KeyValueStore, is_fresh, read_cache, write_cache
from .errors import error_message
from .fetcher import fetch_with_retry
from .models.cache import CacheEntry
from .models.load_state import LoadState

__all__ = ["ResilientDataLoader"]

logger = logging.getLogger(__name__)

_TASK_REFRESH = "background_refresh"

Listener = Callable[[LoadState], None]
FetchFn = Callable[..., Awaitable[Any]]


class ResilientDataLoader:
    """Serve cached measurements and keep them fresh from the network.

    Each call to :meth:`load` is one trigger. A fresh cache entry is served
    right away and refreshed in the background, with refresh failures
    ignored. Without a fresh entry the network is awaited; if every attempt
    fails the error is surfaced together with the stale entry, when there is
    one. Nothing reloads on a timer.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        url: str = config.DEFAULT_API_URL,
        cache_key: str = config.DEFAULT_CACHE_KEY,
        max_age_ms: float = config.DEFAULT_CACHE_MAX_AGE_MS,
        max_retries: int = config.DEFAULT_MAX_RETRIES,
        initial_delay_ms: float = config.DEFAULT_INITIAL_DELAY_MS,
        timeout_ms: float = config.DEFAULT_FETCH_TIMEOUT_MS,
        client: httpx.AsyncClient | None = None,
        fetch: FetchFn | None = None,
    ) -> None:
        self.store = store
        self.url = url
        self.cache_key = cache_key
        self.max_age_ms = max_age_ms
        self.max_retries = max_retries
        self.initial_delay_ms = initial_delay_ms
        self.timeout_ms = timeout_ms
        self.client = client
        self._fetch = fetch or fetch_with_retry
        self._state = LoadState()
        self._listeners: list[Listener] = []
        self.tasks: dict[str, asyncio.Task] = {}

    @classmethod
    def from_settings(
        cls,
        settings: config.Settings | None = None,
        store: KeyValueStore | None = None,
        **kwargs: Any,
    ) -> ResilientDataLoader:
        s = settings or config.settings
        return cls(
            store if store is not None else JsonFileStore(s.CACHE_FILE),
            url=s.API_URL,
            cache_key=s.CACHE_KEY,
            max_age_ms=s.CACHE_MAX_AGE_MS,
            max_retries=s.MAX_RETRIES,
            initial_delay_ms=s.INITIAL_DELAY_MS,
            timeout_ms=s.FETCH_TIMEOUT_MS,
            **kwargs,
        )

    @property
    def state(self) -> LoadState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for every state transition.

        Returns:
            A callable that removes the listener again.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set_state(self, state: LoadState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("State listener failed")

    def _read_cached(self) -> CacheEntry | None:
        try:
            return read_cache(self.store, self.cache_key)
        except OSError as e:
            logger.warning("Cache unavailable, loading from network: %s", e)
            return None

    def _store(self, data: Any) -> None:
        try:
            write_cache(self.store, self.cache_key, data)
        except OSError as e:
            logger.warning("Failed to write cache: %s", e)

    async def _fetch_fresh(self) -> Any:
        return await self._fetch(
            self.url,
            client=self.client,
            max_retries=self.max_retries,
            initial_delay_ms=self.initial_delay_ms,
            timeout_ms=self.timeout_ms,
        )

    async def load(self) -> LoadState:
        """Run one load trigger and return the resulting state."""
        self._set_state(replace(self._state, loading=True, error=None))

        cached = self._read_cached()
        if cached is not None and is_fresh(cached, self.max_age_ms):
            logger.debug("Serving fresh cache entry %r", self.cache_key)
            self._set_state(LoadState(data=cached.data, loading=False, error=None))
            self._start_background_refresh()
            return self._state

        try:
            fresh = await self._fetch_fresh()
        except Exception as e:
            message = error_message(e)
            if cached is not None:
                logger.warning("Load failed, serving stale cache: %s", message)
                data = cached.data
            else:
                logger.error("Load failed with no cached data: %s", message)
                data = self._state.data
            self._set_state(LoadState(data=data, loading=False, error=message))
            return self._state

        self._set_state(LoadState(data=fresh, loading=False, error=None))
        self._store(fresh)
        return self._state

    def _start_background_refresh(self) -> None:
        task = self.tasks.get(_TASK_REFRESH)
        if isinstance(task, asyncio.Task) and not task.done():
            logger.debug("Background refresh already running")
            return
        self.tasks[_TASK_REFRESH] = asyncio.create_task(self._background_refresh())

    async def _background_refresh(self) -> None:
        try:
            fresh = await self._fetch_fresh()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug("Background refresh failed, keeping cache: %s", e)
            return
        self._set_state(replace(self._state, data=fresh, loading=False))
        self._store(fresh)
        logger.info("Background refresh updated cache %r", self.cache_key)

    async def wait_background(self) -> None:
        """Wait for any in-flight background refresh to finish."""
        pending = [t for t in self.tasks.values() if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def aclose(self) -> None:
        for task in self.tasks.values():
            if not task.done():
                task.cancel()
        await asyncio.gather(*self.tasks.values(), return_exceptions=True)
        self.tasks.clear()
