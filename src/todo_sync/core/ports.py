# src/todo_sync/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the sync core.

The controller and the reconciliation engine depend on Protocols instead of
concrete implementations, so the remote store, the durable queue and the
connectivity source can be swapped for fakes in tests.
"""

from typing import Any, Awaitable, Callable, Protocol

from ..tasks.task_models import PendingOperation, Task, TaskId

RefreshListener = Callable[[list[Task]], Awaitable[None]]


class KeyValueRepo(Protocol):
    """Durable local persistence: values survive process restarts."""

    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...


class PendingRepo(Protocol):
    """Ordered queue of unacknowledged mutations."""

    async def append(self, op: PendingOperation) -> str: ...
    async def remove(self, client_id: str) -> None: ...
    async def list_all(self) -> list[PendingOperation]: ...
    async def assign_server_id(self, client_id: str, server_id: TaskId) -> int: ...
    async def server_id_for(self, task_id: TaskId | None) -> TaskId | None: ...

class RemoteTaskRepo(Protocol):
    """
    Remote task collection.

    Every method raises RemoteError on transport failure or a non-success status.
    """

    async def list_tasks(self, *, fresh: bool = False) -> list[Task]: ...
    async def create_task(self, fields: dict[str, Any]) -> Task: ...
    async def replace_task(self, task: dict[str, Any]) -> Task: ...
    async def delete_task(self, task_id: TaskId) -> None: ...


class Connectivity(Protocol):
    @property
    def is_online(self) -> bool: ...
