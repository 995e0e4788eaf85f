# src/todo_sync/sync/reconciler.py

from __future__ import annotations

"""
Reconciliation engine.

One pass:
- bail out when offline,
- replay the pending queue oldest-first against the remote store,
- drop each op the server acknowledged (delete: 2xx or 404); an accepted
  create also records its server id so ops aimed at the client id follow it,
- leave every failed op queued, in place, for the next trigger,
- fetch the full collection (bypassing the cache fallback, which also
  refreshes the cached snapshot) and hand it to the view.

Passes are single-flight: a call made while a pass is running awaits that pass.
"""

import asyncio
import logging
from typing import Any

from ..core.ports import Connectivity, PendingRepo, RefreshListener, RemoteTaskRepo
from ..tasks.task_models import OpKind, PendingOperation, Task, TaskId, is_local_id
from .remote import RemoteError
from .status import SyncStateMachine

logger = logging.getLogger(__name__)

# Outcomes for a single op.
_DONE = "done"
_KEEP = "keep"


class ReconciliationEngine:
    def __init__(
        self,
        pending: PendingRepo,
        remote: RemoteTaskRepo,
        connectivity: Connectivity,
        *,
        status: SyncStateMachine | None = None,
        on_refresh: RefreshListener | None = None,
        timeout_seconds: float = 120.0,
    ) -> None:
        self._pending = pending
        self._remote = remote
        self._connectivity = connectivity
        self._status = status
        self._on_refresh = on_refresh
        self._timeout_s = max(1.0, float(timeout_seconds))
        self._inflight: asyncio.Task[list[Task] | None] | None = None

    @property
    def in_progress(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    def set_refresh_listener(self, listener: RefreshListener | None) -> None:
        self._on_refresh = listener

    async def reconcile(self) -> list[Task] | None:
        """
        Run (or join) a reconciliation pass.

        Returns the fresh server list, or None when offline or when the final
        refresh failed. Remote failures never raise; local store errors do.
        """
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.create_task(self._run())
        else:
            logger.debug("Reconciliation already running; joining it")
        # A cancelled caller must not cancel the shared pass.
        return await asyncio.shield(self._inflight)

    def trigger(self) -> asyncio.Task[list[Task] | None]:
        """Fire-and-forget variant for event callbacks (online edge, startup)."""
        task = asyncio.ensure_future(self.reconcile())
        task.add_done_callback(_log_background_failure)
        return task

    async def _run(self) -> list[Task] | None:
        if not self._connectivity.is_online:
            logger.debug("Offline; reconciliation skipped")
            return None

        if self._status is not None:
            self._status.sync_started()
        try:
            return await asyncio.wait_for(self._pass(), timeout=self._timeout_s)
        except asyncio.TimeoutError:
            logger.warning("Reconciliation timed out after %.1fs", self._timeout_s)
            return None
        finally:
            if self._status is not None:
                self._status.sync_finished()

    async def _pass(self) -> list[Task] | None:
        ops = await self._pending.list_all()
        if ops:
            logger.info("Reconciling %d pending op(s)", len(ops))
            await self._drain(ops)

        if not self._connectivity.is_online:
            logger.info("Went offline during reconciliation; refresh skipped")
            return None

        try:
            tasks = await self._remote.list_tasks(fresh=True)
        except RemoteError as e:
            logger.info("Refresh after reconciliation failed: %s", e)
            return None

        if self._on_refresh is not None:
            await self._on_refresh(tasks)
        logger.info("Reconciliation finished; server has %d task(s)", len(tasks))
        return tasks

    async def _drain(self, ops: list[PendingOperation]) -> None:
        # Creates still waiting for the server, by client id.
        unconfirmed = {op.client_id for op in ops if op.kind is OpKind.CREATE}

        for op in ops:
            if not self._connectivity.is_online:
                logger.info("Offline mid-drain; %s and later ops stay queued", op.client_id)
                return
            try:
                outcome = await self._apply(op, unconfirmed)
            except RemoteError as e:
                logger.info("%s op client_id=%s stays queued: %s", op.kind.value, op.client_id, e)
                continue

            if outcome == _DONE:
                await self._pending.remove(op.client_id)

    async def _apply(self, op: PendingOperation, unconfirmed: set[str]) -> str:
        if op.kind is OpKind.CREATE:
            created = await self._remote.create_task(op.payload)
            unconfirmed.discard(op.client_id)
            if created.id is not None:
                # Dequeues the create and retargets ops aimed at its client id.
                await self._pending.assign_server_id(op.client_id, created.id)
            return _DONE

        target = await self._resolve_target(op, unconfirmed)
        if target is None:
            return _KEEP

        if op.kind is OpKind.UPDATE:
            payload: dict[str, Any] = {**op.payload, "id": target}
            await self._remote.replace_task(payload)
            return _DONE

        if op.kind is OpKind.DELETE:
            await self._remote.delete_task(target)
            return _DONE

        logger.warning("Unknown op kind %r client_id=%s; keeping it", op.kind, op.client_id)
        return _KEEP

    async def _resolve_target(self, op: PendingOperation, unconfirmed: set[str]) -> TaskId | None:
        """Server id the op should act on, or None to leave it queued for now."""
        target = op.target_id
        if target is None:
            logger.warning("%s op client_id=%s has no target id; keeping it", op.kind.value, op.client_id)
            return None
        if not is_local_id(target):
            return target

        server_id = await self._pending.server_id_for(target)
        if server_id is not None:
            return server_id
        if str(target) not in unconfirmed:
            logger.warning(
                "%s op client_id=%s targets local id %s with no known server id; keeping it",
                op.kind.value,
                op.client_id,
                target,
            )
        return None


def _log_background_failure(task: asyncio.Future[Any]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Background reconciliation failed", exc_info=exc)
