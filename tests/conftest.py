# tests/conftest.py

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path
from types import SimpleNamespace

import httpx
import pytest
import pytest_asyncio

from todo_sync.cli.bootstrap import create_initial_state
from todo_sync.core.state import AppState
from todo_sync.tasks.kv_store import KeyValueStore
from todo_sync.tasks.pending_store import PendingStore

from .fakes import APP_ORIGIN, COLLECTION_URL, FakeServer


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with the composition root.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="todo-sync-test",
        log_level="DEBUG",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        kv_db_path=tmp_path / "local.sqlite3",
        cache_db_path=tmp_path / "cache.sqlite3",
        # Remote store
        api_base_url=APP_ORIGIN + "/api",
        app_origin=APP_ORIGIN,
        collection_url=COLLECTION_URL,
        # Cache
        cache_name="todo-cache-test",
        shell_urls=lambda: [APP_ORIGIN + "/", APP_ORIGIN + "/index.html"],
        # Timeouts
        connect_timeout_s=1.0,
        read_timeout_s=1.0,
        reconcile_timeout_s=5.0,
        # Connectivity
        probe_enabled=False,
        probe_url=None,
        probe_interval_s=0.05,
        start_online=True,
    )


@pytest.fixture()
def server() -> FakeServer:
    return FakeServer()


@pytest.fixture()
def pending(tmp_path: Path) -> PendingStore:
    # Real SQLite: durability is part of what we want to test.
    return PendingStore(KeyValueStore(tmp_path / "pending.sqlite3"))


@pytest_asyncio.fixture()
async def state(settings: SimpleNamespace, server: FakeServer) -> AsyncIterator[AppState]:
    """
    AppState wired exactly like production, with the network replaced by
    an in-memory server behind httpx.MockTransport.
    """
    st = create_initial_state(settings=settings, network=httpx.MockTransport(server.handler))
    yield st
    await st.http.aclose()
