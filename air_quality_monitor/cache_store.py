"""Persistent key-value cache used by the loader.

A store holds raw strings under keys. The helpers on top of it wrap payloads
into a ``{data, timestamp}`` envelope and decide freshness from the
wall-clock age of that envelope only.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from .errors import CacheCorruptError
from .models.cache import CacheEntry

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "now_ms",
    "read_cache",
    "write_cache",
    "is_fresh",
]

logger = logging.getLogger(__name__)


def now_ms() -> float:
    return time.time() * 1000.0


class KeyValueStore(ABC):
    """Minimal string key-value store interface."""

    @abstractmethod
    def get(self, key: str) -> str | None: ...

    @abstractmethod
    def set(self, key: str, value: str) -> None: ...

    @abstractmethod
    def delete(self, key: str) -> None: ...


class MemoryStore(KeyValueStore):
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.items: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.items.get(key)

    def set(self, key: str, value: str) -> None:
        self.items[key] = value

    def delete(self, key: str) -> None:
        self.items.pop(key, None)


class JsonFileStore(KeyValueStore):
    """Key-value store persisted as one JSON object on disk.

    Every write rewrites the whole file through a temporary sibling and
    ``os.replace`` so readers only ever see a complete document.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("Unreadable cache file %s; treating as empty", self.path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Cache file %s is not a JSON object; ignoring", self.path)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(items, fh, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except FileNotFoundError:
                pass
            raise

    def get(self, key: str) -> str | None:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        items = self._read_all()
        items[key] = value
        self._write_all(items)

    def delete(self, key: str) -> None:
        items = self._read_all()
        if items.pop(key, None) is not None:
            self._write_all(items)


def read_cache(store: KeyValueStore, key: str) -> CacheEntry | None:
    """Read the cache entry under ``key``.

    Returns:
        The parsed entry, or None when the slot is empty. A slot holding
        unparseable text is deleted and also reported as None.
    """
    raw = store.get(key)
    if raw is None:
        return None
    try:
        return CacheEntry.from_json(raw)
    except CacheCorruptError as e:
        logger.warning("Removing corrupt cache entry %r: %s", key, e)
        store.delete(key)
        return None


def write_cache(store: KeyValueStore, key: str, data: Any) -> CacheEntry:
    entry = CacheEntry(data=data, timestamp=now_ms())
    store.set(key, entry.to_json())
    return entry


def is_fresh(entry: CacheEntry, max_age_ms: float, now: float | None = None) -> bool:
    current = now_ms() if now is None else now
    return current - entry.timestamp < max_age_ms
