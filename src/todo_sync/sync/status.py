# src/todo_sync/sync/status.py

from __future__ import annotations

import logging
from enum import StrEnum
from typing import Callable

logger = logging.getLogger(__name__)


class SyncStatus(StrEnum):
    IDLE_ONLINE = "idle_online"
    IDLE_OFFLINE = "idle_offline"
    SYNCING = "syncing"


StatusListener = Callable[[SyncStatus], None]


class SyncStateMachine:
    """
    Explicit state over connectivity x sync activity.

    Transitions:
      IDLE_OFFLINE --online-->      IDLE_ONLINE
      IDLE_ONLINE  --offline-->     IDLE_OFFLINE
      IDLE_*       --sync_started--> SYNCING
      SYNCING      --sync_finished--> IDLE_ONLINE / IDLE_OFFLINE (latest connectivity)

    Connectivity edges seen while SYNCING are remembered and applied on finish.
    """

    def __init__(self, *, online: bool = True) -> None:
        self._online = bool(online)
        self._state = SyncStatus.IDLE_ONLINE if online else SyncStatus.IDLE_OFFLINE
        self._listeners: list[StatusListener] = []

    @property
    def state(self) -> SyncStatus:
        return self._state

    @property
    def online(self) -> bool:
        return self._online

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def _idle(self) -> SyncStatus:
        return SyncStatus.IDLE_ONLINE if self._online else SyncStatus.IDLE_OFFLINE

    def _move(self, new: SyncStatus) -> None:
        if new == self._state:
            return
        old, self._state = self._state, new
        logger.debug("Sync status %s -> %s", old.value, new.value)
        for listener in list(self._listeners):
            try:
                listener(new)
            except Exception:
                logger.exception("Sync status listener failed")

    def on_online(self) -> None:
        self._online = True
        if self._state is not SyncStatus.SYNCING:
            self._move(self._idle())

    def on_offline(self) -> None:
        self._online = False
        if self._state is not SyncStatus.SYNCING:
            self._move(self._idle())

    def sync_started(self) -> None:
        self._move(SyncStatus.SYNCING)

    def sync_finished(self) -> None:
        self._move(self._idle())

    def describe(self) -> str:
        label = "Online" if self._online else "Offline"
        if self._state is SyncStatus.SYNCING:
            label += " · Syncing…"
        return label
