# src/todo_sync/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import cast

from ..core.state import AppState
from ..tasks.task_models import PendingItem, TaskId, ViewItem

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /list, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return await h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return await h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        lines.append("  (plain text adds a task)")
        return "\n".join(lines)


registry = CommandRegistry()


def _render_item(index: int, item: ViewItem) -> str:
    task = item.task
    mark = "x" if task.completed else " "
    suffix = " (pending)" if isinstance(item, PendingItem) else ""
    return f"{index:>3}. [{mark}] {task.title}  #{task.id}{suffix}"


def render_list(state: AppState) -> str:
    items = state.view.items
    if not items:
        return "No tasks."
    return "\n".join(_render_item(i, item) for i, item in enumerate(items, start=1))


def _resolve_ref(state: AppState, ref: str) -> TaskId | None:
    """A 1-based list position, or "#<id>" / a bare id as shown by /list."""
    if ref.startswith("#"):
        item = state.view.find(ref[1:])
        return item.key if item is not None else None
    items = state.view.items
    if ref.isdigit():
        n = int(ref)
        if 1 <= n <= len(items):
            return items[n - 1].key
    item = state.view.find(ref)
    return item.key if item is not None else None


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_list(state: AppState, args: list[str]) -> str:
    return f"[{state.status.describe()}]\n" + render_list(state)


async def cmd_add(state: AppState, args: list[str]) -> str:
    title = " ".join(args)
    task = await state.view.add_task(title)
    if task is None:
        return "Title is empty; nothing added."
    where = "queued" if task.local_only else "saved"
    return f"Added ({where}): {task.title}"


async def cmd_toggle(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /toggle <n|id>"
    task_id = _resolve_ref(state, args[0])
    if task_id is None:
        return f"No such task: {args[0]}"
    task = await state.view.toggle_task(task_id)
    return f"[{'x' if task.completed else ' '}] {task.title}"


async def cmd_rename(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /rename <n|id> <new title>"
    task_id = _resolve_ref(state, args[0])
    if task_id is None:
        return f"No such task: {args[0]}"
    task = await state.view.rename_task(task_id, " ".join(args[1:]))
    return f"Renamed: {task.title}"


async def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /delete <n|id>"
    task_id = _resolve_ref(state, args[0])
    if task_id is None:
        return f"No such task: {args[0]}"
    await state.view.delete_task(task_id)
    return f"Deleted #{task_id}"


async def cmd_sync(
    state: AppState,
    args: list[str],
    emit: CommandEmitter | None = None,
) -> str:
    if not state.connectivity.is_online:
        return "Offline; changes stay queued until the connection comes back."

    if emit:
        with contextlib.suppress(Exception):
            emit("[SYNC] Reconciling with the server...")

    tasks = await state.engine.reconcile()
    left = len(await state.pending.list_all())
    if tasks is None:
        return f"Sync did not complete; {left} change(s) still queued."
    return f"Synced. Server has {len(tasks)} task(s); {left} change(s) still queued."


async def cmd_pending(state: AppState, args: list[str]) -> str:
    ops = await state.pending.list_all()
    if not ops:
        return "No queued changes."
    lines = [f"Queued changes ({len(ops)}):"]
    for i, op in enumerate(ops, start=1):
        lines.append(f"{i:>3}. {op.kind.value:<6} #{op.target_id}  ({op.client_id})")
    return "\n".join(lines)


async def cmd_status(state: AppState, args: list[str]) -> str:
    ops = await state.pending.list_all()
    return (
        "Status:\n"
        f"  Connection: {state.status.describe()}\n"
        f"  Queued changes: {len(ops)}\n"
        f"  Server: {state.settings.collection_url}"
    )


async def cmd_online(state: AppState, args: list[str]) -> str:
    if not state.connectivity.set_online(True):
        return "Already online."
    return "Marked online; syncing in the background."


async def cmd_offline(state: AppState, args: list[str]) -> str:
    if not state.connectivity.set_online(False):
        return "Already offline."
    return "Marked offline; changes will be queued."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("list", cmd_list, help_text="Show tasks (pending ones are marked).", aliases=["ls"])
registry.register("add", cmd_add, help_text="Add a task: /add <title>.")
registry.register("toggle", cmd_toggle, help_text="Flip completed: /toggle <n|id>.", aliases=["done"])
registry.register("rename", cmd_rename, help_text="Change a title: /rename <n|id> <title>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <n|id>.", aliases=["rm"])
registry.register("sync", cmd_sync, help_text="Replay queued changes and refresh the list now.")
registry.register("pending", cmd_pending, help_text="Show the queue of unsynced changes.")
registry.register("status", cmd_status, help_text="Show connection, sync state and queue size.")
registry.register("online", cmd_online, help_text="Force the connection state to online.")
registry.register("offline", cmd_offline, help_text="Force the connection state to offline.")
