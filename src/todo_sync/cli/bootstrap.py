# src/todo_sync/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the stores, the caching transport, the remote client, connectivity,
  reconciliation and the view controller into AppState,
- runs the startup sequence (cache install/activate, cached render, first sync).
"""

from __future__ import annotations

import logging
import httpx

from ..cache.routing import RouteTable
from ..cache.store import CacheStorage
from ..cache.transport import CacheInstallError, CachingTransport
from ..config import get_settings
from ..core.state import AppState
from ..sync.connectivity import ConnectivityMonitor
from ..sync.reconciler import ReconciliationEngine
from ..sync.remote import RemoteTaskApi, make_timeout
from ..sync.status import SyncStateMachine
from ..tasks.kv_store import KeyValueStore
from ..tasks.pending_store import PendingStore
from ..tasks.view_state import ViewStateController, read_cached_tasks

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.kv_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.cache_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, network: httpx.AsyncBaseTransport | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    network is the transport that actually talks to the server; tests pass an
    httpx.MockTransport here. If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    timeout = make_timeout(settings.connect_timeout_s, settings.read_timeout_s)
    if network is None:
        network = httpx.AsyncHTTPTransport()

    cache_storage = CacheStorage(settings.cache_db_path)
    transport = CachingTransport(
        network,
        cache_storage,
        cache_name=settings.cache_name,
        routes=RouteTable.build(
            collection_url=settings.collection_url,
            app_origin=settings.app_origin,
        ),
        shell_manifest=settings.shell_urls(),
    )
    http = httpx.AsyncClient(transport=transport, timeout=timeout)
    remote = RemoteTaskApi(http, settings.collection_url)

    pending = PendingStore(KeyValueStore(settings.kv_db_path))
    connectivity = ConnectivityMonitor(initial=settings.start_online)
    status = SyncStateMachine(online=connectivity.is_online)

    async def _cached_list():
        return await read_cached_tasks(await transport.cache(), settings.collection_url)

    view = ViewStateController(pending, remote, connectivity, cached_list=_cached_list)
    engine = ReconciliationEngine(
        pending,
        remote,
        connectivity,
        status=status,
        on_refresh=view.apply_server_list,
        timeout_seconds=settings.reconcile_timeout_s,
    )

    connectivity.add_listener(on_online=status.on_online, on_offline=status.on_offline)
    connectivity.add_listener(on_online=engine.trigger)

    return AppState(
        settings=settings,
        pending=pending,
        cache_storage=cache_storage,
        transport=transport,
        http=http,
        remote=remote,
        connectivity=connectivity,
        status=status,
        engine=engine,
        view=view,
    )


async def startup(state: AppState) -> None:
    """
    Startup sequence:
    1. precache the shell into the current generation (first run only) and
       drop older generations,
    2. render cached tasks merged with queued ops,
    3. reconcile when online (renders the server list on success).
    """
    transport = state.transport
    if state.connectivity.is_online and not await transport.is_installed():
        try:
            await transport.install()
        except CacheInstallError as e:
            # Not fatal: the shell is re-attempted on the next start.
            logger.warning("Shell precache failed: %s", e)
    await transport.activate()

    await state.view.load()

    if state.connectivity.is_online:
        await state.engine.reconcile()


async def shutdown(state: AppState) -> None:
    try:
        await state.http.aclose()
    except Exception:
        logger.debug("HTTP client close failed.", exc_info=True)
