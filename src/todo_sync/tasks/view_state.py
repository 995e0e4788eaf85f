# src/todo_sync/tasks/view_state.py

from __future__ import annotations

"""
View state controller.

Holds the list the console renders. Every mutation is applied to memory first,
then either sent straight to the remote store (online, server-known id) or
queued as a pending operation (offline, failed call, or client-generated id).

The rendered list is rebuilt by merge_view() whenever a server list arrives:
confirmed tasks in server order with queued ops layered on top by identity.
"""

import asyncio
import logging
from dataclasses import replace
from typing import Awaitable, Callable

from ..cache.store import ResponseCache, cache_key
from ..core.ports import Connectivity, PendingRepo, RemoteTaskRepo
from ..sync.remote import RemoteError
from .task_models import (
    ConfirmedItem,
    OpKind,
    PendingItem,
    PendingOperation,
    Task,
    TaskId,
    ViewItem,
    is_local_id,
    new_client_id,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

CachedListReader = Callable[[], Awaitable[list[Task] | None]]


def _same_id(a: TaskId | None, b: TaskId | None) -> bool:
    return a is not None and b is not None and str(a) == str(b)


def merge_view(confirmed: list[Task], pending: list[PendingOperation]) -> list[ViewItem]:
    """
    Layer queued ops (oldest first) over the confirmed list, matched by task id.

    - create: a new pending item, shown above everything confirmed (newest first)
    - update: replaces the item with the same id in place
    - delete: hides the item with the same id
    """
    items: list[ViewItem] = [ConfirmedItem(t) for t in confirmed]
    created: list[ViewItem] = []

    def _index(pool: list[ViewItem], key: TaskId | None) -> int:
        for i, item in enumerate(pool):
            if _same_id(item.key, key):
                return i
        return -1

    for op in pending:
        if op.kind is OpKind.CREATE:
            created.insert(0, PendingItem(op))
            continue

        target = op.target_id
        for pool in (created, items):
            idx = _index(pool, target)
            if idx < 0:
                continue
            if op.kind is OpKind.DELETE:
                del pool[idx]
            else:
                pool[idx] = PendingItem(op)
            break
        else:
            if op.kind is OpKind.UPDATE:
                # Target not visible (e.g. no cached list yet); still show the edit.
                created.insert(0, PendingItem(op))

    return created + items


async def read_cached_tasks(cache: ResponseCache, url: str) -> list[Task] | None:
    """Decode the cached task-collection snapshot, if one exists."""
    entry = await asyncio.to_thread(cache.match, cache_key(url))
    if entry is None:
        return None
    try:
        data = entry.json()
    except (ValueError, UnicodeDecodeError):
        logger.warning("Cached task list at %s is not JSON; ignoring it", url)
        return None
    if not isinstance(data, list):
        return None
    return [Task.from_wire(item) for item in data if isinstance(item, dict)]


class ViewStateController:
    def __init__(
        self,
        pending: PendingRepo,
        remote: RemoteTaskRepo,
        connectivity: Connectivity,
        *,
        cached_list: CachedListReader | None = None,
    ) -> None:
        self._pending = pending
        self._remote = remote
        self._connectivity = connectivity
        self._cached_list = cached_list
        self._confirmed: list[Task] = []
        self._items: list[ViewItem] = []

    # ---- reading ----

    @property
    def items(self) -> list[ViewItem]:
        return list(self._items)

    @property
    def tasks(self) -> list[Task]:
        return [item.task for item in self._items]

    def find(self, task_id: TaskId) -> ViewItem | None:
        for item in self._items:
            if _same_id(item.key, task_id):
                return item
        return None

    # ---- loading ----

    async def load(self) -> list[Task]:
        """Startup: cached server list (if any) with queued ops layered on top."""
        confirmed: list[Task] = []
        if self._cached_list is not None:
            cached = await self._cached_list()
            if cached is not None:
                confirmed = cached
        self._confirmed = confirmed
        await self._rebuild()
        logger.info(
            "View loaded: %d task(s) (%d confirmed from cache)", len(self._items), len(confirmed)
        )
        return self.tasks

    async def apply_server_list(self, tasks: list[Task]) -> None:
        """Replace the confirmed list with a fresh server snapshot."""
        self._confirmed = list(tasks)
        await self._rebuild()
        logger.debug("View refreshed from server: %d task(s)", len(self._items))

    async def _rebuild(self) -> None:
        ops = await self._pending.list_all()
        self._items = merge_view(self._confirmed, ops)

    # ---- in-memory edits ----

    def _index_of(self, key: TaskId | None) -> int:
        for i, existing in enumerate(self._items):
            if _same_id(existing.key, key):
                return i
        return -1

    def _put(self, key: TaskId | None, item: ViewItem) -> None:
        idx = self._index_of(key)
        if idx < 0:
            self._items.insert(0, item)
        else:
            self._items[idx] = item

    def _drop(self, key: TaskId | None) -> None:
        self._items = [i for i in self._items if not _same_id(i.key, key)]

    def _confirm(self, task: Task) -> None:
        # Direct successes also land in the confirmed list so a rebuild keeps them.
        for i, existing in enumerate(self._confirmed):
            if _same_id(existing.id, task.id):
                self._confirmed[i] = task
                return
        self._confirmed.insert(0, task)

    def _unconfirm(self, key: TaskId | None) -> None:
        self._confirmed = [t for t in self._confirmed if not _same_id(t.id, key)]

    def _require(self, task_id: TaskId) -> ViewItem:
        item = self.find(task_id)
        if item is None:
            raise KeyError(f"unknown task: {task_id}")
        return item

    def _can_call_remote(self, task_id: TaskId | None) -> bool:
        return self._connectivity.is_online and task_id is not None and not is_local_id(task_id)

    async def _enqueue(self, op: PendingOperation, undo: Callable[[], None]) -> None:
        """Queue op; if the store write fails, roll the optimistic edit back and re-raise."""
        try:
            await self._pending.append(op)
        except Exception:
            undo()
            raise

    # ---- mutations ----

    async def add_task(self, title: str) -> Task | None:
        title = (title or "").strip()
        if not title:
            return None

        draft = Task(id=None, title=title, completed=False, updated_at=utc_now_iso())
        op = PendingOperation.create(draft, client_id=new_client_id())
        optimistic = PendingItem(op)
        self._items.insert(0, optimistic)

        if self._connectivity.is_online:
            try:
                created = await self._remote.create_task(op.payload)
            except RemoteError as e:
                logger.info("Create failed (%s); queued for sync", e)
            else:
                await self._settle_create(op.client_id, optimistic, created)
                return created

        await self._enqueue(op, undo=lambda: self._drop(op.client_id))
        return optimistic.task

    async def _settle_create(self, client_id: str, optimistic: PendingItem, created: Task) -> None:
        self._confirm(created)
        if created.id is None:
            self._put(client_id, ConfirmedItem(created))
            return

        # Edits made while the create was in flight were queued against the
        # client id; point them at the server id.
        retargeted = await self._pending.assign_server_id(client_id, created.id)
        idx = self._index_of(client_id)
        if retargeted == 0 and idx >= 0 and self._items[idx] is optimistic:
            self._items[idx] = ConfirmedItem(created)
            return
        await self._rebuild()

    async def toggle_task(self, task_id: TaskId) -> Task:
        current = self._require(task_id).task
        updated = replace(current, completed=not current.completed, updated_at=utc_now_iso())
        return await self._push_update(updated)

    async def rename_task(self, task_id: TaskId, title: str) -> Task:
        current = self._require(task_id).task
        updated = replace(current, title=(title or "").strip(), updated_at=utc_now_iso())
        return await self._push_update(updated)

    async def _push_update(self, updated: Task) -> Task:
        previous = self._require(updated.id)
        op = PendingOperation.update(updated, client_id=new_client_id())
        self._put(updated.id, PendingItem(op))

        if self._can_call_remote(updated.id):
            try:
                confirmed = await self._remote.replace_task(updated.to_wire())
            except RemoteError as e:
                logger.info("Update of %s failed (%s); queued for sync", updated.id, e)
            else:
                self._confirm(confirmed)
                self._put(updated.id, ConfirmedItem(confirmed))
                return confirmed

        await self._enqueue(op, undo=lambda: self._put(updated.id, previous))
        return PendingItem(op).task

    async def delete_task(self, task_id: TaskId) -> None:
        item = self._require(task_id)
        key = item.key
        position = self._index_of(key)
        self._drop(key)

        if self._can_call_remote(key):
            try:
                await self._remote.delete_task(key)
            except RemoteError as e:
                logger.info("Delete of %s failed (%s); queued for sync", key, e)
            else:
                self._unconfirm(key)
                return

        def _restore() -> None:
            if self._index_of(key) < 0:
                self._items.insert(min(position, len(self._items)), item)

        await self._enqueue(PendingOperation.delete(key, client_id=new_client_id()), undo=_restore)
