# src/retask/cli/bootstrap.py

"""
CLI bootstrap helpers.

Builds the AppState:
- creates the data directories,
- constructs the task store, alarm facility and renderer,
- wires scheduler and window aggregator into AppState.
"""

from __future__ import annotations

import logging

from ..alarms.asyncio_alarms import AsyncioAlarmFacility
from ..config import get_settings
from ..core.ports import NotificationRenderer
from ..core.state import AppState
from ..notify.console_renderer import ConsoleNotificationRenderer
from ..tasks.reminder_scheduler import ReminderScheduler
from ..tasks.task_store import TaskStore
from ..tasks.upcoming_window import UpcomingWindowAggregator

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(
    *,
    settings=None,
    renderer: NotificationRenderer | None = None,
    matrix_client=None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Settings and renderer are injectable for tests. Without a renderer the
    console renderer is used.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if renderer is None:
        renderer = ConsoleNotificationRenderer(max_summary_lines=settings.summary_max_lines)

    task_store = TaskStore(settings.tasks_db_path)
    alarms = AsyncioAlarmFacility(
        exact_permitted=settings.exact_alarms,
        inexact_window_seconds=settings.inexact_window_seconds,
    )
    scheduler = ReminderScheduler(alarms, renderer, lead_minutes=settings.lead_minutes)
    aggregator = UpcomingWindowAggregator(
        task_store,
        scheduler,
        renderer,
        window_hours=settings.window_hours,
        imminent_minutes=settings.imminent_minutes,
    )

    logger.info(
        "State ready: lead=%smin imminent=%smin window=%sh refresh=%smin",
        settings.lead_minutes,
        settings.imminent_minutes,
        settings.window_hours,
        settings.refresh_minutes,
    )
    return AppState(
        settings=settings,
        task_store=task_store,
        alarms=alarms,
        renderer=renderer,
        scheduler=scheduler,
        aggregator=aggregator,
        matrix_client=matrix_client,
    )


async def create_matrix_renderer(settings):
    """Return (client, renderer) for Matrix delivery, or (None, None) if unavailable."""
    from ..connectors.matrix_client import create_matrix_client
    from ..notify.matrix_renderer import MatrixNotificationRenderer

    client = await create_matrix_client(settings)
    if client is None:
        return None, None

    if not settings.matrix_rooms:
        # No explicit rooms: learn joined rooms from one sync.
        try:
            await client.sync(timeout=30000, full_state=True)
            logger.info("Matrix initial sync done. Joined rooms: %d", len(client.rooms))
        except Exception:
            logger.exception("Matrix initial sync failed")

    renderer = MatrixNotificationRenderer(
        client,
        room_ids=settings.matrix_rooms,
        max_summary_lines=settings.summary_max_lines,
    )
    return client, renderer
