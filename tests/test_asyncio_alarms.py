# tests/test_asyncio_alarms.py

from __future__ import annotations

import asyncio

import pytest

from retask.alarms.asyncio_alarms import AsyncioAlarmFacility
from retask.core.errors import ExactAlarmDenied
from retask.tasks.reminder_scheduler import ReminderScheduler
from retask.tasks.task_models import Task, now_ms

from .fakes import FakeRenderer


@pytest.mark.asyncio
async def test_alarm_fires_callback() -> None:
    facility = AsyncioAlarmFacility()
    fired = asyncio.Event()

    handle = facility.register_at("k", now_ms() + 20, exact=True, on_fire=fired.set)

    await asyncio.wait_for(fired.wait(), timeout=2.0)
    await asyncio.sleep(0)
    assert not handle.pending
    assert facility.pending() == []


@pytest.mark.asyncio
async def test_cancelled_alarm_does_not_fire() -> None:
    facility = AsyncioAlarmFacility()
    calls: list[str] = []

    handle = facility.register_at("k", now_ms() + 50, exact=True, on_fire=lambda: calls.append("k"))
    facility.cancel(handle)
    await asyncio.sleep(0.1)

    assert calls == []
    assert facility.pending() == []


@pytest.mark.asyncio
async def test_exact_request_denied_when_not_permitted() -> None:
    facility = AsyncioAlarmFacility(exact_permitted=False)

    assert facility.can_schedule_exact() is False
    with pytest.raises(ExactAlarmDenied):
        facility.register_at("k", now_ms() + 1000, exact=True, on_fire=lambda: None)

    handle = facility.register_at("k", now_ms() + 1000, exact=False, on_fire=lambda: None)
    assert handle.pending
    await facility.shutdown()
    assert facility.pending() == []


@pytest.mark.asyncio
async def test_callback_error_is_contained() -> None:
    facility = AsyncioAlarmFacility()
    after = asyncio.Event()

    def boom() -> None:
        raise RuntimeError("renderer exploded")

    facility.register_at("bad", now_ms(), exact=True, on_fire=boom)
    facility.register_at("good", now_ms() + 10, exact=True, on_fire=after.set)

    await asyncio.wait_for(after.wait(), timeout=2.0)


def test_inexact_trigger_rounds_up_to_window() -> None:
    facility = AsyncioAlarmFacility(inexact_window_seconds=60.0)

    assert facility._trigger_time(120_000, exact=False) == 120_000
    assert facility._trigger_time(120_001, exact=False) == 180_000
    assert facility._trigger_time(120_001, exact=True) == 120_001


@pytest.mark.asyncio
async def test_scheduler_with_asyncio_facility_end_to_end() -> None:
    renderer = FakeRenderer()
    facility = AsyncioAlarmFacility()
    # Lead time 0: the reminder fires at the due time itself.
    scheduler = ReminderScheduler(facility, renderer, lead_minutes=0)

    await scheduler.schedule(Task(id="A", title="Kettle", due_at=now_ms() + 30))

    for _ in range(100):
        if renderer.immediate:
            break
        await asyncio.sleep(0.01)

    assert [(tid, title) for tid, title, _ in renderer.immediate] == [("A", "Kettle")]
    assert scheduler.active() == []


@pytest.mark.asyncio
async def test_revoking_exact_permission_falls_back_to_inexact() -> None:
    facility = AsyncioAlarmFacility(inexact_window_seconds=60.0)
    scheduler = ReminderScheduler(facility, FakeRenderer(), lead_minutes=10)

    first = await scheduler.schedule(Task(id="A", title="Exact", due_at=now_ms() + 60 * 60_000))
    facility.set_exact_permitted(False)
    second = await scheduler.schedule(Task(id="B", title="Batched", due_at=now_ms() + 60 * 60_000))

    assert first is not None and first.exact is True
    assert second is not None and second.exact is False
    assert facility.can_schedule_exact() is False
    await facility.shutdown()
