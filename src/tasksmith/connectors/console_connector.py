# src/tasksmith/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from ..cli.commands import format_board
from ..cli.commands import registry as command_registry
from ..core.errors import StoreReadError
from ..core.state import AppState
from ..tasks.board import BoardSnapshot

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleNotifier:
    """Notifier that prints user-visible notices to the console."""

    def notify(self, text: str) -> None:
        _print_ts(f"[!] {text}")


async def _initial_load(state: AppState) -> None:
    try:
        await state.board.refresh()
    except StoreReadError:
        logger.exception("Initial load failed.")
        state.notifier.notify("Error loading data.")
        return

    _print_ts(format_board(state.board.aggregates))

    suggest = bool(getattr(state.settings, "suggest_on_empty", True))
    if suggest and not state.board.aggregates and not state.suggested_initial_task:
        state.suggested_initial_task = True
        if await state.editor.suggest_main_task():
            reply = await command_registry.handle(state, "/show")
            if reply:
                _print_ts(reply)


def _editing_position(state: AppState) -> int | None:
    for i, entry in enumerate(state.editor.subtasks.entries, start=1):
        if entry.editing:
            return i
    return None


def plain_text_command(state: AppState, text: str) -> str:
    """Map free text to a command: rename the subtask being edited, add a subtask, or start a task."""
    if not state.editor.is_open:
        return "/new " + text
    pos = _editing_position(state)
    if pos is not None:
        return f"/rename {pos} {text}"
    return "/sub " + text


def _log_snapshot(snap: BoardSnapshot) -> None:
    logger.info("Task list v%s: %d task(s)", snap.version, len(snap.aggregates))


async def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")

    unsubscribe = state.board.subscribe(_log_snapshot)
    try:
        await _initial_load(state)
        await _read_commands(state)
    finally:
        unsubscribe()

    logger.info("Console connector finished.")


async def _read_commands(state: AppState) -> None:
    while True:
        try:
            user_input = (await asyncio.to_thread(input, ">>> ")).strip()
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        if not user_input.startswith("/"):
            user_input = plain_text_command(state, user_input)

        try:
            reply = await command_registry.handle(state, user_input, emit=_print_ts)
        except Exception:
            logger.exception("Command handler crashed.")
            reply = "Internal error while handling a command."

        if reply is not None:
            _print_ts(reply)
