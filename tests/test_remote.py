# tests/test_remote.py

from __future__ import annotations

import httpx
import pytest

from todo_sync.sync.remote import RemoteError, RemoteTaskApi

from .fakes import COLLECTION_URL, FakeServer


def _api(server: FakeServer) -> RemoteTaskApi:
    return RemoteTaskApi(httpx.AsyncClient(transport=httpx.MockTransport(server.handler)), COLLECTION_URL)


@pytest.mark.asyncio
async def test_crud_against_the_collection(server: FakeServer) -> None:
    api = _api(server)
    server.seed("first")

    created = await api.create_task({"id": "p_local", "title": "second", "completed": False})
    assert created.id == 2
    # Client ids are never sent to the server.
    assert server.todos["2"]["id"] == 2

    updated = await api.replace_task({**created.to_wire(), "completed": True})
    assert updated.completed is True

    await api.delete_task(1)
    titles = [t.title for t in await api.list_tasks()]
    assert titles == ["second"]


@pytest.mark.asyncio
async def test_delete_of_missing_task_counts_as_success(server: FakeServer) -> None:
    api = _api(server)
    await api.delete_task(999)
    assert server.count("DELETE") == 1


@pytest.mark.asyncio
async def test_failures_become_remote_errors(server: FakeServer) -> None:
    api = _api(server)

    server.fail["POST"] = 500
    with pytest.raises(RemoteError) as err:
        await api.create_task({"title": "x"})
    assert err.value.status == 500
    assert not err.value.is_transport_error

    with pytest.raises(RemoteError) as err:
        await api.replace_task({"id": 42, "title": "ghost"})
    assert err.value.status == 404

    server.offline = True
    with pytest.raises(RemoteError) as err:
        await api.list_tasks()
    assert err.value.is_transport_error


@pytest.mark.asyncio
async def test_replace_requires_an_id(server: FakeServer) -> None:
    with pytest.raises(ValueError):
        await _api(server).replace_task({"title": "no id"})


@pytest.mark.asyncio
async def test_fresh_list_sends_no_cache(server: FakeServer) -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers.get("cache-control", ""))
        return server.handler(request)

    api = RemoteTaskApi(httpx.AsyncClient(transport=httpx.MockTransport(handler)), COLLECTION_URL)
    await api.list_tasks()
    await api.list_tasks(fresh=True)
    assert seen == ["", "no-cache"]
