# tests/test_kv_store.py

from __future__ import annotations

from pathlib import Path

import pytest

from todo_sync.tasks.kv_store import KeyValueStore


def test_kv_store_roundtrip_and_persistence(tmp_path: Path) -> None:
    db = tmp_path / "kv.sqlite3"
    store = KeyValueStore(db)

    assert store.get("missing") is None
    assert store.get("missing", []) == []

    store.set("pending", [{"a": 1}])
    store.set("pending", [{"a": 2}, {"b": "ü"}])
    assert store.count_keys() == 1

    # A new instance over the same file sees the last write.
    reopened = KeyValueStore(db)
    assert reopened.get("pending") == [{"a": 2}, {"b": "ü"}]


def test_kv_store_rejects_unserializable_values(tmp_path: Path) -> None:
    store = KeyValueStore(tmp_path / "kv.sqlite3")
    with pytest.raises(TypeError):
        store.set("bad", {"x": object()})
    assert store.get("bad") is None
