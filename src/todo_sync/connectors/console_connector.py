# src/todo_sync/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..cli.commands import render_list
from ..core.state import AppState
from ..sync.remote import RemoteError
from ..sync.status import SyncStatus

logger = logging.getLogger(__name__)

EXIT_COMMANDS = ("/exit", "/quit")


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


async def _read_line(prompt: str) -> str:
    # input() blocks; keep the event loop free for sync and probing.
    return await asyncio.to_thread(input, prompt)


async def handle_line(state: AppState, line: str) -> str | None:
    """
    One console line -> reply text.

    Slash commands go to the registry; anything else becomes a new task.
    """
    line = line.strip()
    if not line:
        return None

    try:
        reply = await command_registry.handle(state, line, emit=_print_ts)
        if reply is not None:
            return reply
        task = await state.view.add_task(line)
    except KeyError as e:
        return f"No such task: {e.args[0] if e.args else e}"
    except RemoteError as e:
        logger.info("Remote call failed: %s", e)
        return f"[SYNC] {e}"

    if task is None:
        return None
    return f"Added{' (queued)' if task.local_only else ''}: {task.title}"


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started (%s).", state.status.describe())
    _print_ts("[CONSOLE] Type a task to add it. Use /help for commands. Use /exit to quit.\n")
    print(render_list(state), flush=True)

    def _on_status(status: SyncStatus) -> None:
        if status is not SyncStatus.SYNCING:
            _print_ts(f"[{state.status.describe()}]")

    state.status.add_listener(_on_status)

    while True:
        try:
            user_input = (await _read_line(">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in EXIT_COMMANDS:
            logger.info("Console exit command received.")
            break

        try:
            reply = await handle_line(state, user_input)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is not None:
            _print_ts(reply)

    logger.info("Console connector finished.")
