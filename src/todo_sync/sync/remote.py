# src/todo_sync/sync/remote.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..tasks.task_models import Task, TaskId

logger = logging.getLogger(__name__)


class RemoteError(RuntimeError):
    """
    A remote call did not succeed.

    status is None for transport failures (offline, timeout, DNS, reset),
    otherwise the HTTP status the server answered with.
    """

    def __init__(self, message: str, *, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status

    @property
    def is_transport_error(self) -> bool:
        return self.status is None


def make_timeout(connect_s: float, read_s: float) -> httpx.Timeout:
    return httpx.Timeout(
        connect=connect_s,
        read=read_s,
        write=10.0,
        pool=connect_s,
    )


def _describe(exc: Exception) -> str:
    return f"{exc.__class__.__name__}: {exc}" if str(exc) else exc.__class__.__name__


class RemoteTaskApi:
    """
    Async client for the remote task collection.

    Endpoints (relative to collection_url):
    - GET    /          list
    - POST   /          create (task fields without id)
    - PUT    /{id}      replace (full task)
    - DELETE /{id}      delete; 404 counts as success
    """

    def __init__(self, client: httpx.AsyncClient, collection_url: str) -> None:
        self._client = client
        self._collection_url = collection_url.rstrip("/")

    @property
    def collection_url(self) -> str:
        return self._collection_url

    def _item_url(self, task_id: TaskId) -> str:
        return f"{self._collection_url}/{task_id}"

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.info("%s %s failed: %s", method, url, _describe(e))
            raise RemoteError(f"{method} {url} failed: {_describe(e)}") from e

    @staticmethod
    def _task_from(response: httpx.Response, what: str) -> Task:
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteError(f"{what}: response is not JSON", status=response.status_code) from e
        if not isinstance(data, dict):
            raise RemoteError(f"{what}: expected a JSON object", status=response.status_code)
        return Task.from_wire(data)

    async def list_tasks(self, *, fresh: bool = False) -> list[Task]:
        """
        Fetch the whole collection.

        fresh=True asks the caching layer not to fall back to a cached copy.
        """
        headers = {"Cache-Control": "no-cache"} if fresh else None
        response = await self._send("GET", self._collection_url, headers=headers)
        if not response.is_success:
            raise RemoteError(f"list returned {response.status_code}", status=response.status_code)
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteError("list: response is not JSON", status=response.status_code) from e
        if not isinstance(data, list):
            raise RemoteError("list: expected a JSON array", status=response.status_code)
        tasks = [Task.from_wire(item) for item in data if isinstance(item, dict)]
        logger.debug(
            "Listed %d tasks (from_cache=%s)",
            len(tasks),
            bool(response.extensions.get("from_cache")),
        )
        return tasks

    async def create_task(self, fields: dict[str, Any]) -> Task:
        body = {k: v for k, v in fields.items() if k != "id"}
        response = await self._send("POST", self._collection_url, json=body)
        if not response.is_success:
            raise RemoteError(f"create returned {response.status_code}", status=response.status_code)
        task = self._task_from(response, "create")
        logger.debug("Created task id=%s", task.id)
        return task

    async def replace_task(self, task: dict[str, Any]) -> Task:
        task_id = task.get("id")
        if task_id is None:
            raise ValueError("replace_task requires an id")
        response = await self._send("PUT", self._item_url(task_id), json=task)
        if not response.is_success:
            raise RemoteError(f"update {task_id} returned {response.status_code}", status=response.status_code)
        return self._task_from(response, "update")

    async def delete_task(self, task_id: TaskId) -> None:
        response = await self._send("DELETE", self._item_url(task_id))
        if response.is_success or response.status_code == 404:
            logger.debug("Deleted task id=%s (status=%s)", task_id, response.status_code)
            return
        raise RemoteError(f"delete {task_id} returned {response.status_code}", status=response.status_code)
