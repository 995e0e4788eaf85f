# tests/test_cache_transport.py

from __future__ import annotations

from pathlib import Path

import httpx
import pytest

from todo_sync.cache.routing import RouteTable
from todo_sync.cache.store import CacheStorage, cache_key
from todo_sync.cache.transport import CacheInstallError, CachingTransport, OfflineCacheMiss

from .fakes import APP_ORIGIN, COLLECTION_URL, FakeServer

SHELL = [APP_ORIGIN + "/", APP_ORIGIN + "/index.html"]


def _transport(tmp_path: Path, server: FakeServer, *, name: str = "v1", shell=None) -> CachingTransport:
    return CachingTransport(
        httpx.MockTransport(server.handler),
        CacheStorage(tmp_path / "cache.sqlite3"),
        cache_name=name,
        routes=RouteTable.build(collection_url=COLLECTION_URL, app_origin=APP_ORIGIN),
        shell_manifest=SHELL if shell is None else shell,
    )


@pytest.mark.asyncio
async def test_collection_is_cached_and_served_offline(tmp_path: Path, server: FakeServer) -> None:
    server.seed("Buy milk")
    transport = _transport(tmp_path, server)

    async with httpx.AsyncClient(transport=transport) as client:
        online = await client.get(COLLECTION_URL)
        assert online.status_code == 200
        assert not online.extensions.get("from_cache")

        server.seed("Added later")  # never fetched
        server.offline = True

        offline = await client.get(COLLECTION_URL)
        assert offline.extensions.get("from_cache") is True
        assert [t["title"] for t in offline.json()] == ["Buy milk"]


@pytest.mark.asyncio
async def test_offline_without_cache_entry_raises(tmp_path: Path, server: FakeServer) -> None:
    server.offline = True
    async with httpx.AsyncClient(transport=_transport(tmp_path, server)) as client:
        with pytest.raises(OfflineCacheMiss):
            await client.get(COLLECTION_URL)


@pytest.mark.asyncio
async def test_no_cache_request_refreshes_but_never_falls_back(tmp_path: Path, server: FakeServer) -> None:
    server.seed("a")
    transport = _transport(tmp_path, server)
    async with httpx.AsyncClient(transport=transport) as client:
        await client.get(COLLECTION_URL)

        server.seed("b")
        fresh = await client.get(COLLECTION_URL, headers={"Cache-Control": "no-cache"})
        assert len(fresh.json()) == 2

        # The fresh answer replaced the cached snapshot.
        cached = (await transport.cache()).match(cache_key(COLLECTION_URL))
        assert len(cached.json()) == 2

        server.offline = True
        with pytest.raises(httpx.TransportError):
            await client.get(COLLECTION_URL, headers={"Cache-Control": "no-cache"})


@pytest.mark.asyncio
async def test_server_error_prefers_cache_then_passes_through(tmp_path: Path, server: FakeServer) -> None:
    server.fail["GET"] = 500
    async with httpx.AsyncClient(transport=_transport(tmp_path, server)) as client:
        response = await client.get(COLLECTION_URL)
        assert response.status_code == 500

        server.fail.clear()
        await client.get(COLLECTION_URL)

        server.fail["GET"] = 503
        response = await client.get(COLLECTION_URL)
        assert response.status_code == 200
        assert response.extensions.get("from_cache") is True


@pytest.mark.asyncio
async def test_writes_pass_through_untouched(tmp_path: Path, server: FakeServer) -> None:
    transport = _transport(tmp_path, server)
    async with httpx.AsyncClient(transport=transport) as client:
        response = await client.post(COLLECTION_URL, json={"title": "x"})
        assert response.status_code == 201

        server.offline = True
        with pytest.raises(httpx.ConnectError):
            await client.post(COLLECTION_URL, json={"title": "y"})

    assert (await transport.cache()).keys() == []


@pytest.mark.asyncio
async def test_network_first_falls_back_without_writing(tmp_path: Path, server: FakeServer) -> None:
    transport = _transport(tmp_path, server)
    async with httpx.AsyncClient(transport=transport) as client:
        # Plain same-origin reads are not cached.
        assert (await client.get(APP_ORIGIN + "/index.html")).status_code == 200
        assert (await transport.cache()).keys() == []

        await transport.install()
        server.shell["/index.html"] = b"<html>v2</html>"
        assert (await client.get(APP_ORIGIN + "/index.html")).content == b"<html>v2</html>"

        server.offline = True
        fallback = await client.get(APP_ORIGIN + "/index.html")
        assert fallback.content == b"<html>todo</html>"
        assert fallback.extensions.get("from_cache") is True

        with pytest.raises(httpx.ConnectError):
            await client.get(APP_ORIGIN + "/never-cached.js")


@pytest.mark.asyncio
async def test_install_is_all_or_nothing(tmp_path: Path, server: FakeServer) -> None:
    transport = _transport(tmp_path, server, shell=SHELL + [APP_ORIGIN + "/missing.css"])

    with pytest.raises(CacheInstallError):
        await transport.install()
    assert (await transport.cache()).keys() == []
    assert await transport.is_installed() is False

    server.shell["/missing.css"] = b"body{}"
    assert await transport.install() == 3
    assert await transport.is_installed() is True


@pytest.mark.asyncio
async def test_activate_deletes_other_generations(tmp_path: Path, server: FakeServer) -> None:
    old = _transport(tmp_path, server, name="todo-cache-v1")
    await old.install()

    new = _transport(tmp_path, server, name="todo-cache-v2")
    await new.install()
    deleted = await new.activate()

    assert deleted == ["todo-cache-v1"]
    storage = CacheStorage(tmp_path / "cache.sqlite3")
    assert storage.keys() == ["todo-cache-v2"]
    assert await new.activate() == []


@pytest.mark.asyncio
async def test_fallback_reads_the_current_generation_before_activate(tmp_path: Path, server: FakeServer) -> None:
    old = _transport(tmp_path, server, name="todo-cache-v1")
    await old.install()

    server.shell["/index.html"] = b"<html>v2</html>"
    new = _transport(tmp_path, server, name="todo-cache-v2")
    await new.install()

    # v1 is still on disk; the offline fallback must not pick its copy.
    server.offline = True
    async with httpx.AsyncClient(transport=new) as client:
        fallback = await client.get(APP_ORIGIN + "/index.html")
    assert fallback.content == b"<html>v2</html>"
    assert sorted(CacheStorage(tmp_path / "cache.sqlite3").keys()) == ["todo-cache-v1", "todo-cache-v2"]
