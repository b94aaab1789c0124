"""View layer for formatting loader state as plain text."""

from __future__ import annotations

from typing import Any

from .models.load_state import LoadState


def _measurements(data: Any) -> list[Any]:
    if isinstance(data, dict) and isinstance(data.get("measurements"), list):
        return data["measurements"]
    return []


def _format_item(item: Any) -> str:
    if isinstance(item, dict):
        return ", ".join(f"{k}={v}" for k, v in item.items())
    return str(item)


def render_load_state(state: LoadState) -> str:
    if state.loading:
        return "Loading air quality data..."

    lines: list[str] = []
    if state.data is None:
        lines.append("No data")
    else:
        count = len(_measurements(state.data))
        note = " (cached fallback)" if state.error else ""
        lines.append(f"Measurements: {count}{note}")
    if state.error:
        lines.append(f"Error: {state.error}")
    return "\n".join(lines)


def render_measurements(data: Any, limit: int = 10) -> str:
    items = _measurements(data)
    if not items:
        return "No measurements"
    lines = [f"{i}. {_format_item(item)}" for i, item in enumerate(items[:limit], 1)]
    if len(items) > limit:
        lines.append(f"... and {len(items) - limit} more")
    return "\n".join(lines)
