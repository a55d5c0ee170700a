# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from retask.core.state import AppState
from retask.tasks.reminder_scheduler import ReminderScheduler
from retask.tasks.task_store import TaskStore
from retask.tasks.upcoming_window import UpcomingWindowAggregator

from .fakes import FakeAlarmFacility, FakeClock, FakeRenderer

# Fixed "now" for deterministic timing tests (2023-11-14T22:13:20Z).
T0 = 1_700_000_000_000
MIN = 60_000
HOUR = 60 * MIN


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(T0)


@pytest.fixture()
def alarms() -> FakeAlarmFacility:
    return FakeAlarmFacility()


@pytest.fixture()
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture()
def scheduler(alarms: FakeAlarmFacility, renderer: FakeRenderer, clock: FakeClock) -> ReminderScheduler:
    return ReminderScheduler(alarms, renderer, lead_minutes=10, clock=clock)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    Plain namespace instead of Settings.from_env(), so the environment never leaks in.
    """
    return SimpleNamespace(
        app_name="retask-test",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        lead_minutes=10,
        imminent_minutes=30,
        window_hours=24,
        refresh_minutes=15,
        snooze_minutes=15,
        summary_max_lines=5,
        exact_alarms=True,
        inexact_window_seconds=60.0,
    )


@pytest.fixture()
def state(settings: SimpleNamespace, alarms: FakeAlarmFacility, renderer: FakeRenderer) -> AppState:
    """
    AppState wired with a real SQLite TaskStore and fake alarms/renderer.

    The scheduler uses the real clock here because TaskStore stamps tasks
    with the wall clock.
    """
    store = TaskStore(settings.tasks_db_path)
    scheduler = ReminderScheduler(alarms, renderer, lead_minutes=settings.lead_minutes)
    aggregator = UpcomingWindowAggregator(store, scheduler, renderer)
    return AppState(
        settings=settings,
        task_store=store,
        alarms=alarms,
        renderer=renderer,
        scheduler=scheduler,
        aggregator=aggregator,
    )
