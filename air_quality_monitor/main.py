"""Entrypoint for loading air quality data once from the command line.

This module wires up settings, logging and the loader, runs a single load
trigger and prints the result.
"""

from __future__ import annotations

import asyncio
import logging
import sys

from . import config
from .loader import ResilientDataLoader
from .logger import setup_logging
from .models.load_state import LoadState
from .view import render_load_state, render_measurements

logger = logging.getLogger(__name__)


async def load_once(loader: ResilientDataLoader) -> LoadState:
    """Run one trigger and let a background refresh settle before returning."""
    try:
        await loader.load()
        await loader.wait_background()
    finally:
        await loader.aclose()
    return loader.state


def run() -> int:
    setup_logging()
    config.validate_settings()
    logger.info("Loading air quality data from %s", config.API_URL)

    loader = ResilientDataLoader.from_settings()
    state = asyncio.run(load_once(loader))

    print(render_load_state(state))
    if state.data is not None:
        print(render_measurements(state.data))
    return 1 if state.error and state.data is None else 0


if __name__ == "__main__":
    sys.exit(run())
