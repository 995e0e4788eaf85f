# src/todo_sync/core/state.py

from __future__ import annotations

from dataclasses import dataclass

import httpx

from ..cache.store import CacheStorage
from ..cache.transport import CachingTransport
from ..sync.connectivity import ConnectivityMonitor
from ..sync.reconciler import ReconciliationEngine
from ..sync.remote import RemoteTaskApi
from ..sync.status import SyncStateMachine
from ..tasks.pending_store import PendingStore
from ..tasks.view_state import ViewStateController


@dataclass
class AppState:
    # Settings object (config.Settings in production, a SimpleNamespace in tests).
    settings: object

    pending: PendingStore
    cache_storage: CacheStorage
    transport: CachingTransport
    http: httpx.AsyncClient
    remote: RemoteTaskApi

    connectivity: ConnectivityMonitor
    status: SyncStateMachine
    engine: ReconciliationEngine
    view: ViewStateController
