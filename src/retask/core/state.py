# src/retask/core/state.py

"""
Application state container.

AppState holds the wired components (settings, storage, scheduler, window
aggregator, renderer) and is passed into connectors and command handlers.
Everything is constructed in cli/bootstrap.py; nothing here is global.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..tasks.reminder_scheduler import ReminderScheduler
from ..tasks.task_store import TaskStore
from ..tasks.upcoming_window import UpcomingWindowAggregator
from .ports import AlarmFacility, NotificationRenderer


@dataclass
class AppState:
    settings: Any

    task_store: TaskStore
    alarms: AlarmFacility
    renderer: NotificationRenderer
    scheduler: ReminderScheduler
    aggregator: UpcomingWindowAggregator

    # Optional Matrix client (closed on shutdown).
    matrix_client: Any | None = None

