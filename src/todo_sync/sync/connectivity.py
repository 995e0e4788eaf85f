# src/todo_sync/sync/connectivity.py

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

Listener = Callable[[], None]
Probe = Callable[[], Awaitable[bool]]


class ConnectivityMonitor:
    """
    Current online/offline state plus edge-triggered notifications.

    set_online() only notifies when the value actually changes, so repeated
    reports of the same state never fan out into repeated reconciliations.
    Listeners are plain callables invoked on the event loop thread.
    """

    def __init__(self, *, initial: bool = True) -> None:
        self._online = bool(initial)
        self._on_online: list[Listener] = []
        self._on_offline: list[Listener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def add_listener(
        self,
        *,
        on_online: Listener | None = None,
        on_offline: Listener | None = None,
    ) -> None:
        if on_online is not None:
            self._on_online.append(on_online)
        if on_offline is not None:
            self._on_offline.append(on_offline)

    def set_online(self, online: bool) -> bool:
        """Record the latest state. Returns True when this was a transition."""
        online = bool(online)
        if online == self._online:
            return False
        self._online = online
        logger.info("Connectivity -> %s", "online" if online else "offline")

        for listener in list(self._on_online if online else self._on_offline):
            try:
                listener()
            except Exception:
                logger.exception("Connectivity listener failed")
        return True

    async def run(
        self,
        probe: Probe,
        *,
        interval_seconds: float = 10.0,
        stop_event: asyncio.Event | None = None,
    ) -> None:
        """
        Poll probe() and feed the result into set_online().

        To stop the loop, set stop_event or cancel the task.
        """
        sleep_s = max(0.05, float(interval_seconds))
        stop = stop_event or asyncio.Event()

        while not stop.is_set():
            try:
                ok = await probe()
            except Exception:
                logger.debug("Connectivity probe crashed; assuming offline", exc_info=True)
                ok = False
            logger.debug("Connectivity probe ok=%s", ok)
            self.set_online(ok)

            try:
                await asyncio.wait_for(stop.wait(), timeout=sleep_s)
            except asyncio.TimeoutError:
                pass


def http_probe(client: httpx.AsyncClient, url: str) -> Probe:
    """Probe that reports online when url answers at all (any HTTP status)."""

    async def _probe() -> bool:
        try:
            await client.head(url)
        except httpx.HTTPError:
            return False
        return True

    return _probe
