# src/todo_sync/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs on one event loop:
- startup (cache install/activate, cached render, first reconciliation),
- the connectivity probe as a background task (optional),
- the console REPL until /exit or EOF.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging

import httpx

from ..cli.bootstrap import create_initial_state, shutdown, startup
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..core.state import AppState
from ..logging_setup import setup_logging
from ..sync.connectivity import http_probe
from ..sync.remote import make_timeout

logger = logging.getLogger(__name__)


async def _probe_loop(state: AppState, stop: asyncio.Event) -> None:
    settings = state.settings
    url = settings.probe_url or settings.api_base_url
    timeout = make_timeout(settings.connect_timeout_s, settings.connect_timeout_s)
    # Separate client: probes must never be answered from the cache.
    async with httpx.AsyncClient(timeout=timeout) as client:
        await state.connectivity.run(
            http_probe(client, url),
            interval_seconds=settings.probe_interval_s,
            stop_event=stop,
        )


async def run(state: AppState) -> None:
    stop = asyncio.Event()
    probe_task: asyncio.Task[None] | None = None

    try:
        await startup(state)

        if state.settings.probe_enabled:
            probe_task = asyncio.create_task(_probe_loop(state, stop))

        await run_console_loop(state)
    finally:
        stop.set()
        if probe_task is not None:
            probe_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await probe_task
        await shutdown(state)


def main() -> None:
    settings = get_settings()

    # choose console log level from settings.log_level
    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)

    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s against %s...", settings.app_name, settings.collection_url)

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    try:
        asyncio.run(run(state))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
