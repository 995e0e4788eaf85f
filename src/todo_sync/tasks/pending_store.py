# src/todo_sync/tasks/pending_store.py

from __future__ import annotations

import asyncio
import logging

from ..core.ports import KeyValueRepo
from .task_models import PendingOperation, TaskId, is_local_id, new_client_id

logger = logging.getLogger(__name__)

PENDING_KEY = "pending"
ASSIGNED_IDS_KEY = "assigned_ids"


class PendingStore:
    """
    Durable FIFO of pending operations, kept as one JSON list under a single key.

    Next to the queue it keeps the client id -> server id map of every create
    the server has accepted. Ops that target a client id are rewritten to the
    server id as soon as it is known, including ops appended later, so an edit
    made against a stale view still reaches the right task.

    Every public method is a read-modify-write, so all of them run under one
    asyncio.Lock. Storage calls go through a worker thread and are real
    suspension points.

    Errors from the backing store propagate; nothing is retried here.
    """

    def __init__(
        self,
        kv: KeyValueRepo,
        *,
        key: str = PENDING_KEY,
        assigned_key: str = ASSIGNED_IDS_KEY,
    ) -> None:
        self._kv = kv
        self._key = key
        self._assigned_key = assigned_key
        self._lock = asyncio.Lock()

    async def _read(self) -> list[PendingOperation]:
        raw = await asyncio.to_thread(self._kv.get, self._key, [])
        if not isinstance(raw, list):
            logger.warning("Pending list under key=%s is not a list; treating as empty", self._key)
            return []
        out: list[PendingOperation] = []
        for rec in raw:
            try:
                out.append(PendingOperation.from_record(rec))
            except (TypeError, ValueError, AttributeError):
                logger.warning("Skipping malformed pending record: %r", rec)
        return out

    async def _write(self, ops: list[PendingOperation]) -> None:
        await asyncio.to_thread(self._kv.set, self._key, [op.to_record() for op in ops])

    async def _read_assigned(self) -> dict[str, TaskId]:
        raw = await asyncio.to_thread(self._kv.get, self._assigned_key, {})
        return dict(raw) if isinstance(raw, dict) else {}

    @staticmethod
    def _resolved(op: PendingOperation, assigned: dict[str, TaskId]) -> PendingOperation:
        target = op.target_id
        if op.client_id == target or not is_local_id(target):
            return op
        server_id = assigned.get(str(target))
        return op if server_id is None else op.retarget(server_id)

    async def append(self, op: PendingOperation) -> str:
        """Queue op at the tail and return its client id (generated when missing)."""
        async with self._lock:
            ops = await self._read()
            assigned = await self._read_assigned()
            taken = {o.client_id for o in ops}
            client_id = op.client_id
            while not client_id or client_id in taken:
                client_id = new_client_id()
            ops.append(self._resolved(op.with_client_id(client_id), assigned))
            await self._write(ops)
            logger.info("Queued %s op client_id=%s (queue=%d)", op.kind.value, client_id, len(ops))
            return client_id

    async def remove(self, client_id: str) -> None:
        """Drop the op with this client id. Removing an unknown id is a no-op."""
        async with self._lock:
            ops = await self._read()
            remaining = [o for o in ops if o.client_id != client_id]
            if len(remaining) == len(ops):
                logger.debug("remove: client_id=%s not queued", client_id)
                return
            await self._write(remaining)
            logger.debug("Dequeued client_id=%s (queue=%d)", client_id, len(remaining))

    async def assign_server_id(self, client_id: str, server_id: TaskId) -> int:
        """
        Record that the create with this client id now exists as server_id.

        Dequeues that create (if queued) and retargets every queued op aimed
        at the client id. Returns how many ops were retargeted.
        """
        async with self._lock:
            assigned = await self._read_assigned()
            assigned[str(client_id)] = server_id
            # The map is written before the queue.
            await asyncio.to_thread(self._kv.set, self._assigned_key, assigned)

            ops = await self._read()
            out: list[PendingOperation] = []
            retargeted = 0
            for op in ops:
                if op.client_id == client_id:
                    continue
                resolved = self._resolved(op, assigned)
                if resolved is not op:
                    retargeted += 1
                out.append(resolved)
            if retargeted or len(out) != len(ops):
                await self._write(out)
            logger.info(
                "Assigned server id %s to %s (%d queued op(s) retargeted)", server_id, client_id, retargeted
            )
            return retargeted

    async def server_id_for(self, task_id: TaskId | None) -> TaskId | None:
        """Server id recorded for a client id, or None when none is known yet."""
        if task_id is None or not is_local_id(task_id):
            return None
        async with self._lock:
            return (await self._read_assigned()).get(str(task_id))

    async def list_all(self) -> list[PendingOperation]:
        async with self._lock:
            return await self._read()
