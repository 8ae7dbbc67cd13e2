# src/tasksmith/cli/commands.py

from __future__ import annotations

import contextlib
import inspect
import logging
import mimetypes
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import cast

from ..core.errors import StoreReadError, ValidationError
from ..core.state import AppState
from ..tasks.aggregator import sort_subtasks
from ..tasks.editor import TaskEditor
from ..tasks.task_models import Priority, TaskAggregate

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], Awaitable[str]]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], Awaitable[str]]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

_CHECK = {True: "[x]", False: "[ ]"}


class CommandRegistry:
    """Simple slash-command registry used by the console front end (/help, /list, ...)."""

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

        try:
            if nparams >= 3:
                h3 = cast(CommandHandler3, handler)
                return await h3(state, args, emit)
            h2 = cast(CommandHandler2, handler)
            return await h2(state, args)
        except ValidationError as e:
            return f"Invalid: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering ----


def format_board(aggregates: tuple[TaskAggregate, ...] | list[TaskAggregate]) -> str:
    if not aggregates:
        return "No tasks yet. Use /new <title> or /gen."
    lines: list[str] = []
    for i, agg in enumerate(aggregates, start=1):
        main = agg.main_task
        if agg.has_main_task:
            prio = f" ({main.priority.value})" if main.priority != Priority.NONE else ""
            lines.append(f"{i}. {_CHECK[main.completed]} {main.title}{prio}  [{agg.key}]")
        else:
            lines.append(f"{i}. (missing main task)  [{agg.key}]")
        for j, sub in enumerate(sort_subtasks(agg.subtasks), start=1):
            lines.append(f"   {i}.{j} {_CHECK[sub.completed]} {sub.title}")
    return "\n".join(lines)


def format_editor(editor: TaskEditor) -> str:
    if not editor.is_open:
        return "Editor is closed. Use /new or /open <n>."
    main = editor.main_task
    head = "New task" if editor.is_new else f"Editing [{main.id}]"
    lines = [
        f"{head}:",
        f"  title: {main.title or '(empty)'}",
        f"  priority: {main.priority.value}",
    ]
    if main.description:
        lines.append(f"  description: {main.description}")
    if main.due_date:
        lines.append(f"  due: {main.due_date}")
    if main.flagged:
        lines.append("  flagged")
    if len(editor.subtasks):
        lines.append("  subtasks:")
        for i, entry in enumerate(editor.subtasks.entries, start=1):
            mark = " *" if entry.editing else ""
            lines.append(f"    {i}. {_CHECK[entry.task.completed]} {entry.task.title}{mark}")
    else:
        lines.append("  subtasks: (none)")
    return "\n".join(lines)


# ---- argument helpers ----


def _resolve_key(state: AppState, raw: str) -> str | None:
    """Accept a 1-based list position or an aggregate key."""
    aggs = state.board.aggregates
    if raw.isdigit():
        i = int(raw) - 1
        if 0 <= i < len(aggs):
            return aggs[i].key
    if state.board.find(raw) is not None:
        return raw
    return None


def _resolve_target(state: AppState, raw: str) -> tuple[str | None, int | None]:
    """
    "<n|id>" -> (key, None); "<n|id>.<m>" -> (key, m) for the m-th listed subtask.
    """
    head, dot, tail = raw.partition(".")
    if dot and not tail.isdigit():
        return None, None
    return _resolve_key(state, head), (int(tail) if dot else None)


def _resolve_subtask(state: AppState, raw: str | None) -> str | None:
    if not raw or not raw.isdigit():
        return None
    i = int(raw) - 1
    entries = state.editor.subtasks.entries
    if 0 <= i < len(entries):
        return entries[i].task.id
    return None


def _require_open(state: AppState) -> str | None:
    if not state.editor.is_open:
        return "Editor is closed. Use /new or /open <n> first."
    return None


# ---- handlers ----


async def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_status(state: AppState, args: list[str]) -> str:
    ident = state.identities.current_or_create()
    who = ident.user_id + ("" if ident.authenticated else " (local)")
    models = ", ".join(list(getattr(state.settings, "llm_models", []) or []))
    return (
        "Status:\n"
        f"  Owner: {who}\n"
        f"  Tasks: {len(state.board.aggregates)} (snapshot v{state.board.snapshot.version})\n"
        f"  Editor: {'open' if state.editor.is_open else 'closed'}\n"
        f"  Models (priority -> fallback): {models}"
    )


async def cmd_list(state: AppState, args: list[str]) -> str:
    try:
        await state.board.refresh()
    except StoreReadError:
        state.notifier.notify("Error loading data. Showing the last loaded list.")
    return format_board(state.board.aggregates)


async def cmd_new(state: AppState, args: list[str]) -> str:
    state.editor.open_new()
    if args:
        state.editor.set_title(" ".join(args))
    return format_editor(state.editor)


async def cmd_open(state: AppState, args: list[str]) -> str:
    key = _resolve_key(state, args[0]) if args else None
    if key is None:
        return "Usage: /open <n|id>"
    if not await state.editor.open(key):
        return "Could not open task."
    return format_editor(state.editor)


async def cmd_show(state: AppState, args: list[str]) -> str:
    return format_editor(state.editor)


async def cmd_title(state: AppState, args: list[str]) -> str:
    if err := _require_open(state):
        return err
    state.editor.set_title(" ".join(args))
    return format_editor(state.editor)


async def cmd_priority(state: AppState, args: list[str]) -> str:
    if err := _require_open(state):
        return err
    if not args:
        return "Usage: /priority none|low|medium|high"
    state.editor.set_priority(args[0])
    return format_editor(state.editor)


async def cmd_desc(state: AppState, args: list[str]) -> str:
    if err := _require_open(state):
        return err
    state.editor.set_description(" ".join(args))
    return format_editor(state.editor)


async def cmd_due(state: AppState, args: list[str]) -> str:
    if err := _require_open(state):
        return err
    state.editor.set_due_date(" ".join(args))
    return format_editor(state.editor)


async def cmd_flag(state: AppState, args: list[str]) -> str:
    if err := _require_open(state):
        return err
    on = not args or args[0].lower() in ("on", "1", "true", "yes")
    state.editor.set_flagged(on)
    return format_editor(state.editor)


async def cmd_sub(state: AppState, args: list[str]) -> str:
    if err := _require_open(state):
        return err
    state.editor.add_subtask(" ".join(args))
    return format_editor(state.editor)


async def cmd_rename(state: AppState, args: list[str]) -> str:
    if err := _require_open(state):
        return err
    sub_id = _resolve_subtask(state, args[0] if args else None)
    if sub_id is None or len(args) < 2:
        return "Usage: /rename <n> <title>"
    state.editor.rename_subtask(sub_id, " ".join(args[1:]))
    return format_editor(state.editor)


async def cmd_edit(state: AppState, args: list[str]) -> str:
    if err := _require_open(state):
        return err
    sub_id = _resolve_subtask(state, args[0] if args else None)
    if sub_id is None:
        return "Usage: /edit <n>"
    state.editor.toggle_editing(sub_id)
    return format_editor(state.editor)


async def cmd_check(state: AppState, args: list[str]) -> str:
    if err := _require_open(state):
        return err
    sub_id = _resolve_subtask(state, args[0] if args else None)
    if sub_id is None:
        return "Usage: /check <n>"
    state.editor.toggle_subtask_complete(sub_id)
    return format_editor(state.editor)


async def cmd_rm(state: AppState, args: list[str]) -> str:
    if err := _require_open(state):
        return err
    sub_id = _resolve_subtask(state, args[0] if args else None)
    if sub_id is None:
        return "Usage: /rm <n>"
    state.editor.subtasks.remove(sub_id)
    return format_editor(state.editor)


async def cmd_up(state: AppState, args: list[str]) -> str:
    if err := _require_open(state):
        return err
    sub_id = _resolve_subtask(state, args[0] if args else None)
    if sub_id is None:
        return "Usage: /up <n>"
    state.editor.subtasks.move_up(sub_id)
    return format_editor(state.editor)


async def cmd_down(state: AppState, args: list[str]) -> str:
    if err := _require_open(state):
        return err
    sub_id = _resolve_subtask(state, args[0] if args else None)
    if sub_id is None:
        return "Usage: /down <n>"
    state.editor.subtasks.move_down(sub_id)
    return format_editor(state.editor)


async def cmd_save(state: AppState, args: list[str]) -> str:
    if err := _require_open(state):
        return err
    if not await state.editor.submit():
        return "Not saved."
    return "Saved.\n" + format_board(state.board.aggregates)


async def cmd_close(state: AppState, args: list[str]) -> str:
    state.editor.close()
    return "Editor closed."


async def cmd_done(state: AppState, args: list[str]) -> str:
    key, sub = _resolve_target(state, args[0]) if args else (None, None)
    if key is None:
        return "Usage: /done <n|id>[.m]"
    if not await state.editor.toggle_complete(key, sub):
        return "Not updated."
    return format_board(state.board.aggregates)


async def cmd_retitle(state: AppState, args: list[str]) -> str:
    key, sub = _resolve_target(state, args[0]) if args else (None, None)
    if key is None or len(args) < 2:
        return "Usage: /retitle <n|id>[.m] <title>"
    if not await state.editor.rename_listed(key, " ".join(args[1:]), sub):
        return "Not updated."
    return format_board(state.board.aggregates)


async def cmd_rmsub(state: AppState, args: list[str]) -> str:
    key, sub = _resolve_target(state, args[0]) if args else (None, None)
    if key is None or sub is None:
        return "Usage: /rmsub <n|id>.<m>"
    if not await state.editor.delete_listed_subtask(key, sub):
        return "Not deleted."
    return format_board(state.board.aggregates)


async def cmd_del(state: AppState, args: list[str]) -> str:
    key = _resolve_key(state, args[0]) if args else None
    if key is None:
        return "Usage: /del <n|id>"
    if not await state.editor.delete(key):
        return "Not deleted."
    return "Deleted.\n" + format_board(state.board.aggregates)


async def cmd_gen(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if emit:
        with contextlib.suppress(Exception):
            emit("[GEN] Drafting a task...")
    if not await state.editor.suggest_main_task():
        return "No draft."
    return format_editor(state.editor)


async def cmd_gensub(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /gensub         -> draft subtasks from the title
    /gensub <image> -> also consider an image file
    """
    if err := _require_open(state):
        return err

    image_bytes: bytes | None = None
    mime = "image/png"
    if args:
        path = Path(" ".join(args)).expanduser()
        guessed, _ = mimetypes.guess_type(str(path))
        if not guessed or not guessed.startswith("image/"):
            return "Only image files are supported!"
        try:
            image_bytes = path.read_bytes()
        except OSError as e:
            return f"Cannot read {path}: {e}"
        mime = guessed

    if emit:
        with contextlib.suppress(Exception):
            emit("[GEN] Drafting subtasks...")
    added = await state.editor.suggest_subtasks(image_bytes=image_bytes, image_mime=mime)
    return f"Added {added} subtask(s).\n" + format_editor(state.editor)


async def cmd_login(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /login <user_id>"
    ident = state.identities.sign_in(args[0])
    return f"Signed in as {ident.user_id}."


async def cmd_logout(state: AppState, args: list[str]) -> str:
    state.identities.sign_out()
    ident = state.identities.current_or_create()
    return f"Signed out. New tasks are owned by {ident.user_id}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show owner, task count and models.")
registry.register("list", cmd_list, help_text="Reload and show all tasks.", aliases=["ls"])
registry.register("new", cmd_new, help_text="Start a new task: /new [title].")
registry.register("open", cmd_open, help_text="Edit a task: /open <n|id>.")
registry.register("show", cmd_show, help_text="Show the task being edited.")
registry.register("title", cmd_title, help_text="Set the title: /title <text>.")
registry.register("priority", cmd_priority, help_text="Set priority: /priority none|low|medium|high.")
registry.register("desc", cmd_desc, help_text="Set the description: /desc <text>.")
registry.register("due", cmd_due, help_text="Set the due date: /due <date>.")
registry.register("flag", cmd_flag, help_text="Flag the task: /flag on|off.")
registry.register("sub", cmd_sub, help_text="Add a subtask: /sub <title>.")
registry.register("rename", cmd_rename, help_text="Rename a subtask: /rename <n> <title>.")
registry.register("edit", cmd_edit, help_text="Edit a subtask in place: /edit <n>, then type the new title.")
registry.register("check", cmd_check, help_text="Toggle a subtask done in the editor: /check <n>.")
registry.register("rm", cmd_rm, help_text="Remove a subtask: /rm <n>.")
registry.register("up", cmd_up, help_text="Move a subtask up: /up <n>.")
registry.register("down", cmd_down, help_text="Move a subtask down: /down <n>.")
registry.register("save", cmd_save, help_text="Save the task and its subtasks.")
registry.register("close", cmd_close, help_text="Discard edits and close the editor.")
registry.register("done", cmd_done, help_text="Toggle completed: /done <n|id>[.m].")
registry.register("retitle", cmd_retitle, help_text="Rename a listed task or subtask: /retitle <n|id>[.m] <title>.")
registry.register("rmsub", cmd_rmsub, help_text="Delete one listed subtask: /rmsub <n|id>.<m>.")
registry.register("del", cmd_del, help_text="Delete a task and its subtasks: /del <n|id>.")
registry.register("gen", cmd_gen, help_text="Draft a new task with the LLM.")
registry.register("gensub", cmd_gensub, help_text="Draft subtasks: /gensub [image path].")
registry.register("login", cmd_login, help_text="Sign in: /login <user_id>.")
registry.register("logout", cmd_logout, help_text="Sign out (tasks fall back to the local owner).")
