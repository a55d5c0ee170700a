# src/retask/tasks/upcoming_window.py

from __future__ import annotations

"""
Upcoming-window aggregator.

A small polling loop that:
- queries tasks due in the next WINDOW_HOURS,
- pushes the ordered list to the renderer as the "upcoming tasks" summary,
- (re)schedules reminders for tasks due within IMMINENT_MINUTES.

Every refresh re-derives state from storage.
"""

import asyncio
import logging
from collections.abc import Iterable

from ..core.errors import InvalidTaskData, SchedulingFailed
from ..core.ports import Clock, NotificationRenderer, TaskRepo
from .reminder_scheduler import ReminderScheduler
from .task_models import HOUR_MS, MINUTE_MS, Task, WindowSnapshot, now_ms

logger = logging.getLogger(__name__)

WINDOW_HOURS = 24
IMMINENT_MINUTES = 30
REFRESH_MINUTES = 15


def _order_key(task: Task) -> tuple[int, str]:
    return int(task.due_at), str(task.id)


def compute_window(
    tasks: Iterable[Task],
    now: int,
    *,
    window_hours: int = WINDOW_HOURS,
    imminent_minutes: int = IMMINENT_MINUTES,
) -> WindowSnapshot:
    """
    Pure part of refresh().

    summary:  active tasks with now <= due_at < now + window, ordered by (due_at, id)
    imminent: summary tasks with now < due_at <= now + imminent_minutes
    """
    window_end = now + int(window_hours) * HOUR_MS
    imminent_end = now + int(imminent_minutes) * MINUTE_MS

    summary = sorted(
        (
            t
            for t in tasks
            if not t.completed and t.due_at is not None and now <= t.due_at < window_end
        ),
        key=_order_key,
    )
    imminent = [t for t in summary if now < t.due_at <= imminent_end]
    return WindowSnapshot(now=now, summary=summary, imminent=imminent)


class UpcomingWindowAggregator:
    def __init__(
        self,
        task_store: TaskRepo,
        scheduler: ReminderScheduler,
        renderer: NotificationRenderer,
        *,
        window_hours: int = WINDOW_HOURS,
        imminent_minutes: int = IMMINENT_MINUTES,
        clock: Clock = now_ms,
    ) -> None:
        self._store = task_store
        self._scheduler = scheduler
        self._renderer = renderer
        self._window_hours = int(window_hours)
        self._imminent_minutes = int(imminent_minutes)
        self._clock = clock

        self.last_snapshot: WindowSnapshot | None = None

    async def refresh(self, now: int | None = None) -> WindowSnapshot:
        now_ts = self._clock() if now is None else int(now)
        window_end = now_ts + self._window_hours * HOUR_MS

        try:
            tasks = list(self._store.query_tasks_due_between(now_ts, window_end))
        except Exception:
            logger.exception("query_tasks_due_between failed")
            return WindowSnapshot(now=now_ts)

        snapshot = compute_window(
            tasks,
            now_ts,
            window_hours=self._window_hours,
            imminent_minutes=self._imminent_minutes,
        )
        self.last_snapshot = snapshot

        await self._renderer.render_summary(snapshot.summary)

        for task in snapshot.imminent:
            try:
                await self._scheduler.schedule(task, now=now_ts)
            except InvalidTaskData as e:
                logger.warning("Skipping invalid task in window: %s", e)
            except SchedulingFailed:
                logger.exception("Scheduling failed task=%s; next refresh will retry", task.id)

        logger.debug(
            "Window refreshed now=%s summary=%d imminent=%d",
            now_ts,
            len(snapshot.summary),
            len(snapshot.imminent),
        )
        return snapshot


async def run_window_refresh_loop(
        aggregator: UpcomingWindowAggregator,
        *,
        interval_seconds: float = REFRESH_MINUTES * 60.0,
) -> None:
    """
    Call aggregator.refresh() now and then every interval_seconds.

    Errors in one iteration are logged and the loop continues.
    To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.01, float(interval_seconds))
    logger.info("Window refresh loop started (interval=%.1fs)", sleep_s)

    try:
        while True:
            try:
                await aggregator.refresh()
            except Exception:
                logger.exception("Window refresh failed")
            await asyncio.sleep(sleep_s)
    finally:
        logger.info("Window refresh loop stopped")
