# src/retask/tasks/task_api.py

from __future__ import annotations

import logging

from ..core.errors import InvalidTaskData, SchedulingFailed
from ..core.state import AppState
from .task_models import DEFAULT_COLOR_HEX, MINUTE_MS, ScheduledReminder, Task, now_ms

logger = logging.getLogger(__name__)

SNOOZE_MINUTES = 15

SAMPLE_TASKS: list[tuple[str, int, str]] = [
    ("Tea with Priya", -30, "#F6D8CE"),
    ("Water the basil", -20, "#D5F5E3"),
    ("Book a cab to the airport", 0, "#FADBD8"),
    ("Attend yoga class", 10, "#D6EAF8"),
    ("Call the bank", 45, "#F9E79F"),
]


async def _schedule(state: AppState, task: Task) -> ScheduledReminder | None:
    """Schedule and log failures; storage stays the source of truth either way."""
    try:
        return await state.scheduler.schedule(task)
    except InvalidTaskData as e:
        logger.warning("Reminder not scheduled: %s", e)
    except SchedulingFailed:
        logger.exception("Reminder scheduling failed task=%s", task.id)
    return None


async def _cancel(state: AppState, task_id: str) -> None:
    try:
        await state.scheduler.cancel(task_id)
    except SchedulingFailed:
        logger.exception("Reminder cancel failed task=%s", task_id)


async def add_task(
    state: AppState,
    *,
    title: str,
    due_minutes: int,
    color_hex: str = DEFAULT_COLOR_HEX,
) -> Task:
    """Create a task due in `due_minutes` and schedule its reminder."""
    task = state.task_store.create_task(title, due_minutes, color_hex=color_hex)
    await _schedule(state, task)
    logger.info("Task added id=%s due_at=%s", task.id, task.due_at)
    return task


async def edit_task(
    state: AppState,
    task_id: str,
    *,
    title: str | None = None,
    due_minutes: int | None = None,
    color_hex: str | None = None,
) -> Task | None:
    """Update a task; a new due time is counted from now. Reschedules its reminder."""
    due_at = None if due_minutes is None else now_ms() + int(due_minutes) * MINUTE_MS
    task = state.task_store.update_task(task_id, title=title, due_at=due_at, color_hex=color_hex)
    if task is None:
        return None
    await _schedule(state, task)
    return task


async def snooze_task(state: AppState, task_id: str, minutes: int | None = None) -> Task | None:
    """Push the due time back (default SNOOZE_MINUTES) and reschedule."""
    task = state.task_store.get_task(task_id)
    if task is None or task.completed:
        return None

    if minutes is None:
        minutes = getattr(state.settings, "snooze_minutes", SNOOZE_MINUTES)
    updated = state.task_store.update_task(task_id, due_at=task.due_at + int(minutes) * MINUTE_MS)
    if updated is None:
        return None
    await _schedule(state, updated)
    logger.info("Task snoozed id=%s by %s min", task_id, minutes)
    return updated


async def complete_task(state: AppState, task_id: str) -> bool:
    done = state.task_store.complete_task(task_id)
    await _cancel(state, task_id)
    if done:
        logger.info("Task completed id=%s", task_id)
    return done


async def delete_task(state: AppState, task_id: str) -> bool:
    deleted = state.task_store.delete_task(task_id)
    await _cancel(state, task_id)
    return deleted


async def delete_all_tasks(state: AppState) -> int:
    n = state.task_store.delete_all_tasks()
    await state.scheduler.cancel_all()
    return n


async def reschedule_all_active(state: AppState) -> int:
    """
    Register reminders for every active task (startup path).

    Returns how many reminders are pending afterwards.
    """
    try:
        tasks = state.task_store.get_all_active_tasks()
    except Exception:
        logger.exception("get_all_active_tasks failed")
        return 0

    scheduled = 0
    for task in tasks:
        if await _schedule(state, task) is not None:
            scheduled += 1
    logger.info("Rescheduled reminders: %d of %d active tasks", scheduled, len(tasks))
    return scheduled


async def add_sample_tasks(state: AppState) -> list[Task]:
    """Demo data; reminders are only scheduled for tasks due in the future."""
    tasks = [
        state.task_store.create_task(title, minutes, color_hex=color)
        for title, minutes, color in SAMPLE_TASKS
    ]
    now = now_ms()
    for task in tasks:
        if task.due_at > now:
            await _schedule(state, task)
    return tasks
