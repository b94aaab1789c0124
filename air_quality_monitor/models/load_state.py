"""Loader state dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class LoadState:
    data: Any = None
    loading: bool = True
    error: str | None = None


@dataclass
class RetryState:
    attempts_remaining: int
    current_delay_ms: float
