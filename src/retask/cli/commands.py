# src/retask/cli/commands.py

from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Awaitable, Callable
from typing import cast

from ..core.state import AppState
from ..notify.formatting import due_text, format_date_time, format_minutes
from ..tasks import task_api
from ..tasks.task_models import DEFAULT_COLOR_HEX, MINUTE_MS, Task, now_ms

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

COLOR_RE = re.compile(r"^#[0-9A-Fa-f]{6}$")


class CommandRegistry:
    """Slash-command registry used by connectors (/help, /add, /list, ...)."""

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
        Handlers may be plain functions or coroutines.
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
            result = cast(CommandHandler3, handler)(state, args, emit)
        else:
            result = cast(CommandHandler2, handler)(state, args)

        if inspect.isawaitable(result):
            result = await result
        return str(result)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- helpers ----


def _task_line(i: int, task: Task, now: int) -> str:
    mark = "x" if task.completed else " "
    return (
        f"{i}. [{mark}] {task.title} - {due_text(task.due_at, now)} "
        f"({format_date_time(task.due_at)}) id={task.id[:8]}"
    )


def resolve_task(state: AppState, ref: str) -> Task | None:
    """
    Find a task by its /list position (1-based) or by a unique id prefix.
    """
    ref = (ref or "").strip()
    if not ref:
        return None

    active = state.task_store.list_tasks()
    if ref.isdigit():
        idx = int(ref)
        if 1 <= idx <= len(active):
            return active[idx - 1]

    matches = [t for t in state.task_store.list_tasks(include_completed=True) if t.id.startswith(ref)]
    return matches[0] if len(matches) == 1 else None


def _parse_minutes(raw: str) -> int | None:
    try:
        return int(raw)
    except ValueError:
        return None


def _split_color(words: list[str]) -> tuple[list[str], str | None]:
    if words and COLOR_RE.match(words[-1]):
        return words[:-1], words[-1]
    return words, None


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


async def cmd_add(state: AppState, args: list[str]) -> str:
    """/add <minutes> <title...> [#RRGGBB]"""
    minutes = _parse_minutes(args[0]) if args else None
    words, color = _split_color(args[1:])
    title = " ".join(words).strip()
    if minutes is None or not title:
        return "Usage: /add <minutes> <title> [#RRGGBB]"

    task = await task_api.add_task(
        state, title=title, due_minutes=minutes, color_hex=color or DEFAULT_COLOR_HEX
    )
    reminder = state.scheduler.get(task.id)
    when = (
        f"reminder {format_minutes(max(0, (reminder.fire_at - now_ms()) // MINUTE_MS))} from now"
        if reminder
        else "no reminder (too soon)"
    )
    return f"Added: {task.title} - {due_text(task.due_at, now_ms())}, {when}."


def cmd_list(state: AppState, args: list[str]) -> str:
    """/list [all]"""
    include_completed = bool(args) and args[0].lower() == "all"
    tasks = state.task_store.list_tasks(include_completed=include_completed)
    if not tasks:
        return "No tasks."
    now = now_ms()
    return "\n".join(_task_line(i, t, now) for i, t in enumerate(tasks, start=1))


async def cmd_edit(state: AppState, args: list[str]) -> str:
    """/edit <task> <minutes> [title...] [#RRGGBB]"""
    if len(args) < 2 or _parse_minutes(args[1]) is None:
        return "Usage: /edit <task> <minutes> [title] [#RRGGBB]"
    task = resolve_task(state, args[0])
    if task is None:
        return f"No such task: {args[0]}"

    words, color = _split_color(args[2:])
    title = " ".join(words).strip() or None
    updated = await task_api.edit_task(
        state, task.id, title=title, due_minutes=_parse_minutes(args[1]), color_hex=color
    )
    if updated is None:
        return f"No such task: {args[0]}"
    return f"Updated: {updated.title} - {due_text(updated.due_at, now_ms())}."


async def cmd_snooze(state: AppState, args: list[str]) -> str:
    """/snooze <task> [minutes]"""
    if not args:
        return "Usage: /snooze <task> [minutes]"
    task = resolve_task(state, args[0])
    if task is None:
        return f"No such task: {args[0]}"
    minutes = None
    if len(args) > 1:
        minutes = _parse_minutes(args[1])
        if minutes is None or minutes <= 0:
            return "Usage: /snooze <task> [minutes]"
    updated = await task_api.snooze_task(state, task.id, minutes)
    if updated is None:
        return f"Cannot snooze: {task.title}"
    return f"Snoozed: {updated.title} - {due_text(updated.due_at, now_ms())}."


async def cmd_done(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /done <task>"
    task = resolve_task(state, args[0])
    if task is None:
        return f"No such task: {args[0]}"
    if not await task_api.complete_task(state, task.id):
        return f"Already completed: {task.title}"
    return f"Completed: {task.title}"


async def cmd_delete(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /delete <task>"
    task = resolve_task(state, args[0])
    if task is None:
        return f"No such task: {args[0]}"
    await task_api.delete_task(state, task.id)
    return f"Deleted: {task.title}"


async def cmd_clear(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    if not args or args[0].lower() != "yes":
        return "This deletes every task. Confirm with: /clear yes"
    if emit:
        emit("Deleting all tasks and cancelling reminders...")
    n = await task_api.delete_all_tasks(state)
    return f"Deleted {n} task(s)."


async def cmd_refresh(state: AppState, args: list[str]) -> str:
    snapshot = await state.aggregator.refresh()
    return f"Upcoming: {len(snapshot.summary)} task(s), imminent: {len(snapshot.imminent)}."


def cmd_reminders(state: AppState, args: list[str]) -> str:
    pending = state.scheduler.active()
    if not pending:
        return "No pending reminders."
    lines = ["Pending reminders:"]
    for r in pending:
        kind = "exact" if r.exact else "inexact"
        lines.append(f"  {r.title} - fires {format_date_time(r.fire_at)} ({kind}) id={r.task_id[:8]}")
    return "\n".join(lines)


async def cmd_sample(state: AppState, args: list[str]) -> str:
    tasks = await task_api.add_sample_tasks(state)
    return f"Added {len(tasks)} sample task(s)."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("add", cmd_add, help_text="Add a task: /add <minutes> <title> [#RRGGBB].")
registry.register("list", cmd_list, help_text="List tasks by due time: /list [all].", aliases=["ls"])
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <task> <minutes> [title] [#RRGGBB].")
registry.register("snooze", cmd_snooze, help_text="Push a task back: /snooze <task> [minutes].")
registry.register("done", cmd_done, help_text="Mark a task completed: /done <task>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <task>.", aliases=["rm"])
registry.register("clear", cmd_clear, help_text="Delete all tasks: /clear yes.")
registry.register("refresh", cmd_refresh, help_text="Re-check the upcoming window now.")
registry.register("reminders", cmd_reminders, help_text="Show pending reminder alarms.")
registry.register("sample", cmd_sample, help_text="Add demo tasks.")
