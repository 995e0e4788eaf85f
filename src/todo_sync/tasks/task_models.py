# src/todo_sync/tasks/task_models.py

from __future__ import annotations

import secrets
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Mapping, Union

TaskId = Union[int, str]

LOCAL_ID_PREFIX = "p_"

_B36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int) -> str:
    if n <= 0:
        return "0"
    out = []
    while n:
        n, r = divmod(n, 36)
        out.append(_B36[r])
    return "".join(reversed(out))


def new_client_id() -> str:
    """Millisecond timestamp + random bits; practically unique without coordination."""
    return LOCAL_ID_PREFIX + _base36(int(time.time() * 1000)) + _base36(secrets.randbits(52))


def is_local_id(task_id: TaskId | None) -> bool:
    """True for ids generated on this client (the server has never seen them)."""
    return task_id is not None and str(task_id).startswith(LOCAL_ID_PREFIX)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class OpKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(slots=True, frozen=True)
class Task:
    id: TaskId | None
    title: str
    completed: bool = False
    updated_at: str = ""

    # Optimistic and not yet confirmed by the server. Never sent over the wire.
    local_only: bool = False

    @classmethod
    def from_wire(cls, data: Mapping[str, Any]) -> Task:
        raw_id = data.get("id", data.get("_id"))
        return cls(
            id=raw_id,
            title=str(data.get("title") or ""),
            completed=bool(data.get("completed", False)),
            updated_at=str(data.get("updatedAt") or ""),
            local_only=bool(data.get("localOnly", False)),
        )

    def to_wire(self, *, include_id: bool = True) -> dict[str, Any]:
        out: dict[str, Any] = {
            "title": self.title,
            "completed": self.completed,
            "updatedAt": self.updated_at,
        }
        if include_id:
            out = {"id": self.id, **out}
        return out


@dataclass(slots=True, frozen=True)
class PendingOperation:
    """
    One queued, not-yet-acknowledged mutation.

    Payload shape depends on kind:
    - create: {title, completed, updatedAt}
    - update: full task including id
    - delete: {id}

    client_id only identifies the entry inside the local queue.
    """

    kind: OpKind
    payload: dict[str, Any] = field(default_factory=dict)
    client_id: str = ""

    @classmethod
    def create(cls, task: Task, *, client_id: str = "") -> PendingOperation:
        return cls(OpKind.CREATE, task.to_wire(include_id=False), client_id)

    @classmethod
    def update(cls, task: Task, *, client_id: str = "") -> PendingOperation:
        return cls(OpKind.UPDATE, task.to_wire(), client_id)

    @classmethod
    def delete(cls, task_id: TaskId, *, client_id: str = "") -> PendingOperation:
        return cls(OpKind.DELETE, {"id": task_id}, client_id)

    @property
    def target_id(self) -> TaskId | None:
        """The task this op acts on; a create targets its own client id."""
        if self.kind is OpKind.CREATE:
            return self.client_id or None
        return self.payload.get("id")

    def with_client_id(self, client_id: str) -> PendingOperation:
        return replace(self, client_id=client_id)

    def retarget(self, task_id: TaskId) -> PendingOperation:
        """Same update/delete aimed at another task id. Creates are returned unchanged."""
        if self.kind is OpKind.CREATE:
            return self
        return replace(self, payload={**self.payload, "id": task_id})

    def to_record(self) -> dict[str, Any]:
        return {"client_id": self.client_id, "op": self.kind.value, "payload": dict(self.payload)}

    @classmethod
    def from_record(cls, raw: Mapping[str, Any]) -> PendingOperation:
        client_id = raw.get("client_id") or raw.get("clientId")
        payload = raw.get("payload")
        if not client_id or not isinstance(payload, dict):
            raise ValueError(f"malformed pending operation: {raw!r}")
        return cls(kind=OpKind(raw.get("op")), payload=dict(payload), client_id=str(client_id))


@dataclass(slots=True, frozen=True)
class ConfirmedItem:
    """A task as the server last reported it."""

    task: Task

    @property
    def key(self) -> TaskId | None:
        return self.task.id


@dataclass(slots=True, frozen=True)
class PendingItem:
    """A task shown through a queued (or in-flight) operation."""

    operation: PendingOperation

    @property
    def client_id(self) -> str:
        return self.operation.client_id

    @property
    def key(self) -> TaskId | None:
        return self.operation.target_id

    @property
    def task(self) -> Task:
        payload = self.operation.payload
        return Task(
            id=self.key,
            title=str(payload.get("title") or ""),
            completed=bool(payload.get("completed", False)),
            updated_at=str(payload.get("updatedAt") or ""),
            local_only=True,
        )


ViewItem = Union[ConfirmedItem, PendingItem]
