"""Cache-related dataclasses."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from ..errors import CacheCorruptError


@dataclass(frozen=True)
class CacheEntry:
    """Cached payload with the epoch-millisecond time it was stored."""

    data: Any
    timestamp: float

    def to_json(self) -> str:
        return json.dumps({"data": self.data, "timestamp": self.timestamp})

    @classmethod
    def from_json(cls, raw: str) -> CacheEntry:
        try:
            parsed = json.loads(raw)
        except (TypeError, json.JSONDecodeError) as e:
            raise CacheCorruptError(f"cache entry is not valid JSON: {e}") from e
        if not isinstance(parsed, dict) or "data" not in parsed:
            raise CacheCorruptError("cache entry has no data field")
        timestamp = parsed.get("timestamp")
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise CacheCorruptError("cache entry has no numeric timestamp")
        return cls(data=parsed["data"], timestamp=float(timestamp))
