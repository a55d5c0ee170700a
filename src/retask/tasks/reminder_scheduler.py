# src/retask/tasks/reminder_scheduler.py

from __future__ import annotations

"""
Reminder scheduler.

Keeps one pending alarm per active task, timed LEAD_MINUTES before the task is
due, and hands a TaskDue event to the notification renderer when it fires.

The registration table (task_id -> ScheduledReminder) is the only mutable
state and is changed only through schedule()/cancel(); calls for the same
task id are serialized with a per-id lock, last writer wins.
"""

import asyncio
import contextlib
import itertools
import logging
import math
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from ..core.errors import ExactAlarmDenied, InvalidTaskData, SchedulingFailed
from ..core.ports import AlarmFacility, Clock, NotificationRenderer
from ..notify.formatting import due_text
from .task_models import MINUTE_MS, ScheduledReminder, TaskDue, now_ms

logger = logging.getLogger(__name__)

LEAD_MINUTES = 10


def validate_task(task: Any) -> tuple[str, int]:
    """
    Return (task_id, due_at) or raise InvalidTaskData.

    A due timestamp <= 0 counts as unset.
    """
    raw_id = getattr(task, "id", None)
    task_id = "" if raw_id is None else str(raw_id).strip()
    if not task_id:
        raise InvalidTaskData("task id is missing")

    raw_due = getattr(task, "due_at", None)
    if raw_due is None or isinstance(raw_due, bool) or not isinstance(raw_due, (int, float)):
        raise InvalidTaskData(f"task {task_id} has no due timestamp", task_id=task_id)
    if isinstance(raw_due, float) and not (math.isfinite(raw_due) and raw_due.is_integer()):
        raise InvalidTaskData(
            f"task {task_id} due timestamp is not whole milliseconds: {raw_due!r}", task_id=task_id
        )
    due_at = int(raw_due)
    if due_at <= 0:
        raise InvalidTaskData(f"task {task_id} has an unset due timestamp", task_id=task_id)

    return task_id, due_at


@dataclass(slots=True)
class _IdLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class ReminderScheduler:
    def __init__(
        self,
        alarms: AlarmFacility,
        renderer: NotificationRenderer,
        *,
        lead_minutes: int = LEAD_MINUTES,
        clock: Clock = now_ms,
    ) -> None:
        self._alarms = alarms
        self._renderer = renderer
        self._lead_ms = max(0, int(lead_minutes)) * MINUTE_MS
        self._clock = clock

        self._registrations: dict[str, ScheduledReminder] = {}
        self._locks: dict[str, _IdLock] = {}
        self._seq = itertools.count(1)

    @property
    def lead_ms(self) -> int:
        return self._lead_ms

    # ---- read-only views ----

    def get(self, task_id: str) -> ScheduledReminder | None:
        return self._registrations.get(str(task_id))

    def active(self) -> list[ScheduledReminder]:
        return sorted(self._registrations.values(), key=lambda r: (r.fire_at, r.task_id))

    # ---- schedule / cancel ----

    @contextlib.asynccontextmanager
    async def _serialized(self, task_id: str) -> AsyncIterator[None]:
        entry = self._locks.get(task_id)
        if entry is None:
            entry = self._locks[task_id] = _IdLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[task_id]

    async def schedule(self, task: Any, *, now: int | None = None) -> ScheduledReminder | None:
        """
        Register (or replace) the reminder for `task`.

        Returns the active registration, or None when nothing is registered:
        the task is completed or its lead time has already passed.
        Raises InvalidTaskData or SchedulingFailed; neither changes the table.
        """
        task_id, due_at = validate_task(task)

        async with self._serialized(task_id):
            if getattr(task, "completed", False):
                self._drop_quietly(task_id, reason="task completed")
                return None

            now_ts = self._clock() if now is None else int(now)
            fire_at = due_at - self._lead_ms
            if fire_at <= now_ts:
                self._drop_quietly(task_id, reason="lead time passed")
                logger.debug(
                    "Not scheduling task %s: fire_at=%s <= now=%s", task_id, fire_at, now_ts
                )
                return None

            title = str(getattr(task, "title", "") or "")
            current = self._registrations.get(task_id)
            if current is not None and current.fire_at == fire_at and current.title == title:
                return current

            seq = next(self._seq)
            handle, exact = self._register(task_id, title, due_at, fire_at, seq)

            if current is not None:
                # The new alarm is live; a late fire of the old one is ignored by seq.
                self._cancel_handle_quietly(current)

            reminder = ScheduledReminder(
                task_id=task_id,
                title=title,
                due_at=due_at,
                fire_at=fire_at,
                handle=handle,
                exact=exact,
                seq=seq,
            )
            self._registrations[task_id] = reminder
            logger.info(
                "Reminder scheduled task=%s fire_at=%s exact=%s%s",
                task_id,
                fire_at,
                exact,
                " (replaced)" if current is not None else "",
            )
            return reminder

    async def cancel(self, task_id: str) -> bool:
        """
        Drop the pending reminder for `task_id`.

        Returns False when nothing was registered. If the facility fails to
        cancel, the entry is still removed and SchedulingFailed is raised.
        """
        key = str(task_id)
        async with self._serialized(key):
            reminder = self._registrations.pop(key, None)
            if reminder is None:
                return False
            try:
                self._alarms.cancel(reminder.handle)
            except Exception as e:
                raise SchedulingFailed(f"cancel failed for task {key}: {e!r}", task_id=key) from e
            logger.info("Reminder cancelled task=%s", key)
            return True

    async def cancel_all(self) -> int:
        cancelled = 0
        for task_id in list(self._registrations):
            try:
                if await self.cancel(task_id):
                    cancelled += 1
            except SchedulingFailed:
                logger.exception("cancel_all: failed to cancel task=%s", task_id)
        return cancelled

    # ---- internals ----

    def _exact_available(self) -> bool:
        try:
            return bool(self._alarms.can_schedule_exact())
        except Exception:
            logger.debug("can_schedule_exact() failed; using inexact alarms", exc_info=True)
            return False

    def _register(
        self, task_id: str, title: str, due_at: int, fire_at: int, seq: int
    ) -> tuple[Any, bool]:
        async def on_fire() -> None:
            await self._on_fire(task_id, seq)

        exact = self._exact_available()
        if not exact:
            logger.debug("Exact alarms not available, using inexact alarm task=%s", task_id)
        try:
            return self._alarms.register_at(task_id, fire_at, exact=exact, on_fire=on_fire), exact
        except ExactAlarmDenied:
            logger.warning("Exact alarm denied for task=%s, falling back to inexact alarm", task_id)
        except Exception as e:
            raise SchedulingFailed(f"register failed for task {task_id}: {e!r}", task_id=task_id) from e

        try:
            return self._alarms.register_at(task_id, fire_at, exact=False, on_fire=on_fire), False
        except Exception as e:
            raise SchedulingFailed(
                f"inexact register failed for task {task_id}: {e!r}", task_id=task_id
            ) from e

    def _cancel_handle_quietly(self, reminder: ScheduledReminder) -> None:
        try:
            self._alarms.cancel(reminder.handle)
        except Exception:
            logger.warning("Failed to cancel superseded alarm task=%s", reminder.task_id, exc_info=True)

    def _drop_quietly(self, task_id: str, *, reason: str) -> None:
        reminder = self._registrations.pop(task_id, None)
        if reminder is None:
            return
        self._cancel_handle_quietly(reminder)
        logger.info("Reminder dropped task=%s (%s)", task_id, reason)

    async def _on_fire(self, task_id: str, seq: int) -> None:
        async with self._serialized(task_id):
            current = self._registrations.get(task_id)
            if current is None or current.seq != seq:
                logger.debug("Ignoring stale alarm task=%s seq=%s", task_id, seq)
                return
            del self._registrations[task_id]

        event = TaskDue(task_id=current.task_id, title=current.title, due_at=current.due_at)
        logger.info("Reminder fired task=%s due_at=%s", event.task_id, event.due_at)
        await self._renderer.render_immediate(
            event.task_id, event.title, due_text(event.due_at, self._clock())
        )
