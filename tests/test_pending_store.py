# tests/test_pending_store.py

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path

import pytest

from todo_sync.tasks.kv_store import KeyValueStore
from todo_sync.tasks.pending_store import PendingStore
from todo_sync.tasks.task_models import OpKind, PendingOperation, Task

from .fakes import FlakyKeyValueStore


def _create(title: str, client_id: str = "") -> PendingOperation:
    return PendingOperation.create(Task(id=None, title=title), client_id=client_id)


@pytest.mark.asyncio
async def test_append_is_fifo_and_survives_restart(tmp_path: Path) -> None:
    db = tmp_path / "local.sqlite3"
    store = PendingStore(KeyValueStore(db))

    await store.append(_create("a", "p_a"))
    await store.append(PendingOperation.delete(5, client_id="p_b"))
    await store.append(_create("c", "p_c"))

    reopened = PendingStore(KeyValueStore(db))
    ops = await reopened.list_all()
    assert [o.client_id for o in ops] == ["p_a", "p_b", "p_c"]
    assert [o.kind for o in ops] == [OpKind.CREATE, OpKind.DELETE, OpKind.CREATE]


@pytest.mark.asyncio
async def test_append_assigns_missing_or_duplicate_client_ids(pending: PendingStore) -> None:
    first = await pending.append(_create("a"))
    assert first.startswith("p_")

    second = await pending.append(_create("b", first))
    assert second != first

    ids = [o.client_id for o in await pending.list_all()]
    assert ids == [first, second]


@pytest.mark.asyncio
async def test_remove_is_idempotent(pending: PendingStore) -> None:
    await pending.append(_create("a", "p_a"))
    await pending.append(_create("b", "p_b"))

    await pending.remove("p_a")
    await pending.remove("p_a")
    await pending.remove("p_unknown")

    assert [o.client_id for o in await pending.list_all()] == ["p_b"]


@pytest.mark.asyncio
async def test_concurrent_appends_do_not_lose_entries(pending: PendingStore) -> None:
    await asyncio.gather(*(pending.append(_create(f"t{i}", f"p_{i}")) for i in range(20)))
    ops = await pending.list_all()
    assert sorted(o.client_id for o in ops) == sorted(f"p_{i}" for i in range(20))


@pytest.mark.asyncio
async def test_malformed_records_are_skipped() -> None:
    kv = FlakyKeyValueStore()
    kv.data["pending"] = [
        {"client_id": "p_ok", "op": "delete", "payload": {"id": 1}},
        {"op": "create"},
        "garbage",
        {"client_id": "p_bad", "op": "nope", "payload": {}},
    ]
    store = PendingStore(kv)
    assert [o.client_id for o in await store.list_all()] == ["p_ok"]


@pytest.mark.asyncio
async def test_store_errors_propagate() -> None:
    kv = FlakyKeyValueStore()
    store = PendingStore(kv)
    kv.fail_writes = True

    with pytest.raises(sqlite3.OperationalError):
        await store.append(_create("a", "p_a"))
    assert await store.list_all() == []


def _update(task_id, client_id: str) -> PendingOperation:
    return PendingOperation.update(Task(id=task_id, title="x", completed=True), client_id=client_id)


@pytest.mark.asyncio
async def test_assign_server_id_dequeues_create_and_retargets_ops(pending: PendingStore) -> None:
    await pending.append(_create("draft", "p_new"))
    await pending.append(_update("p_new", "p_u"))
    await pending.append(PendingOperation.delete("p_other", client_id="p_d"))

    assert await pending.assign_server_id("p_new", 40) == 1

    ops = await pending.list_all()
    assert [(o.client_id, o.target_id) for o in ops] == [("p_u", 40), ("p_d", "p_other")]
    assert ops[0].payload["title"] == "x"


@pytest.mark.asyncio
async def test_ops_appended_after_assignment_use_the_server_id(tmp_path: Path) -> None:
    db = tmp_path / "local.sqlite3"
    store = PendingStore(KeyValueStore(db))
    await store.append(_create("draft", "p_new"))
    await store.assign_server_id("p_new", 40)
    assert await store.list_all() == []

    reopened = PendingStore(KeyValueStore(db))
    assert await reopened.server_id_for("p_new") == 40
    assert await reopened.server_id_for("p_unknown") is None
    assert await reopened.server_id_for(40) is None

    await reopened.append(PendingOperation.delete("p_new", client_id="p_d"))
    assert [o.target_id for o in await reopened.list_all()] == [40]
