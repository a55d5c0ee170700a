# tests/test_reminder_scheduler.py

from __future__ import annotations

import asyncio

import pytest

from retask.core.errors import InvalidTaskData, SchedulingFailed
from retask.tasks.reminder_scheduler import ReminderScheduler
from retask.tasks.task_models import Task

from .conftest import HOUR, MIN, T0
from .fakes import FakeAlarmFacility, FakeClock, FakeRenderer


def make_task(task_id: str, due_at: int, title: str = "task", completed: bool = False) -> Task:
    return Task(id=task_id, title=title, due_at=due_at, completed=completed)


@pytest.mark.asyncio
async def test_schedule_registers_lead_time_before_due(scheduler, alarms) -> None:
    reminder = await scheduler.schedule(make_task("A", T0 + 20 * MIN))

    assert reminder is not None
    assert reminder.fire_at == T0 + 10 * MIN
    assert reminder.exact is True
    pending = alarms.pending("A")
    assert len(pending) == 1
    assert pending[0].at_ms == T0 + 10 * MIN


@pytest.mark.asyncio
async def test_schedule_skips_when_lead_time_already_passed(scheduler, alarms) -> None:
    assert await scheduler.schedule(make_task("B", T0 + 5 * MIN)) is None
    # fire_at == now counts as passed
    assert await scheduler.schedule(make_task("C", T0 + 10 * MIN)) is None

    assert alarms.registered == []
    assert scheduler.active() == []


@pytest.mark.asyncio
async def test_schedule_then_cancel_leaves_nothing(scheduler, alarms) -> None:
    await scheduler.schedule(make_task("A", T0 + 20 * MIN))

    assert await scheduler.cancel("A") is True

    assert scheduler.get("A") is None
    assert alarms.pending("A") == []


@pytest.mark.asyncio
async def test_schedule_twice_keeps_only_latest(scheduler, alarms) -> None:
    await scheduler.schedule(make_task("A", T0 + 20 * MIN))
    await scheduler.schedule(make_task("A", T0 + 2 * HOUR))

    assert len(scheduler.active()) == 1
    assert scheduler.get("A").due_at == T0 + 2 * HOUR
    pending = alarms.pending("A")
    assert len(pending) == 1
    assert pending[0].at_ms == T0 + 2 * HOUR - 10 * MIN


@pytest.mark.asyncio
async def test_schedule_same_values_keeps_existing_alarm(scheduler, alarms) -> None:
    first = await scheduler.schedule(make_task("A", T0 + 20 * MIN))
    second = await scheduler.schedule(make_task("A", T0 + 20 * MIN))

    assert first is second
    assert len(alarms.registered) == 1


@pytest.mark.asyncio
async def test_cancel_unknown_task_is_noop(scheduler) -> None:
    assert await scheduler.cancel("missing") is False


@pytest.mark.asyncio
async def test_completed_task_is_never_scheduled_and_drops_existing(scheduler, alarms) -> None:
    await scheduler.schedule(make_task("A", T0 + 20 * MIN))

    result = await scheduler.schedule(make_task("A", T0 + 20 * MIN, completed=True))

    assert result is None
    assert scheduler.get("A") is None
    assert alarms.pending() == []


@pytest.mark.asyncio
async def test_moving_due_inside_lead_time_drops_old_alarm(scheduler, alarms) -> None:
    await scheduler.schedule(make_task("A", T0 + 2 * HOUR))

    assert await scheduler.schedule(make_task("A", T0 + 5 * MIN)) is None
    assert alarms.pending("A") == []


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "task",
    [
        Task(id="", title="no id", due_at=T0 + HOUR),
        Task(id="A", title="no due", due_at=None),  # type: ignore[arg-type]
        Task(id="A", title="unset due", due_at=-1),
        Task(id="A", title="bad due", due_at="soon"),  # type: ignore[arg-type]
        Task(id="A", title="nan due", due_at=float("nan")),  # type: ignore[arg-type]
        Task(id="A", title="inf due", due_at=float("inf")),  # type: ignore[arg-type]
        Task(id="A", title="fractional due", due_at=T0 + 20 * MIN + 0.5),  # type: ignore[arg-type]
    ],
)
async def test_invalid_task_data_is_rejected(scheduler, alarms, task) -> None:
    with pytest.raises(InvalidTaskData):
        await scheduler.schedule(task)
    assert alarms.registered == []


@pytest.mark.asyncio
async def test_inexact_registration_when_exact_unavailable(renderer, clock) -> None:
    alarms = FakeAlarmFacility(exact_permitted=False)
    scheduler = ReminderScheduler(alarms, renderer, clock=clock)

    reminder = await scheduler.schedule(make_task("A", T0 + HOUR))

    assert reminder is not None
    assert reminder.exact is False
    assert alarms.pending("A")[0].exact is False


@pytest.mark.asyncio
async def test_exact_denied_falls_back_to_inexact(scheduler, alarms) -> None:
    alarms.deny_exact = True

    reminder = await scheduler.schedule(make_task("A", T0 + HOUR))

    assert reminder is not None
    assert reminder.exact is False
    assert len(alarms.pending("A")) == 1


@pytest.mark.asyncio
async def test_registration_failure_surfaces_scheduling_failed(scheduler, alarms) -> None:
    alarms.fail_register = True

    with pytest.raises(SchedulingFailed):
        await scheduler.schedule(make_task("A", T0 + HOUR))
    assert scheduler.get("A") is None


@pytest.mark.asyncio
async def test_cancel_failure_surfaces_but_drops_entry(scheduler, alarms) -> None:
    await scheduler.schedule(make_task("A", T0 + HOUR))
    alarms.fail_cancel = True

    with pytest.raises(SchedulingFailed):
        await scheduler.cancel("A")
    assert scheduler.get("A") is None


@pytest.mark.asyncio
async def test_fire_renders_reminder_and_clears_registration(scheduler, alarms, renderer, clock) -> None:
    await scheduler.schedule(make_task("A", T0 + 20 * MIN, title="Stand-up"))
    handle = alarms.pending("A")[0]

    clock.advance_ms(10 * MIN)
    await alarms.fire(handle)

    assert renderer.immediate == [("A", "Stand-up", "Due in 10 minutes")]
    assert scheduler.get("A") is None


@pytest.mark.asyncio
async def test_superseded_alarm_firing_late_is_ignored(scheduler, alarms, renderer) -> None:
    await scheduler.schedule(make_task("A", T0 + 20 * MIN))
    old = alarms.pending("A")[0]
    await scheduler.schedule(make_task("A", T0 + 3 * HOUR))

    await alarms.fire(old)

    assert renderer.immediate == []
    assert scheduler.get("A") is not None


@pytest.mark.asyncio
async def test_concurrent_schedules_for_same_id_leave_one_registration(scheduler, alarms) -> None:
    dues = [T0 + (20 + i) * MIN for i in range(5)]

    await asyncio.gather(*(scheduler.schedule(make_task("A", d)) for d in dues))

    assert len(scheduler.active()) == 1
    assert len(alarms.pending("A")) == 1
    assert alarms.pending("A")[0].at_ms == scheduler.get("A").fire_at


@pytest.mark.asyncio
async def test_cancel_all(scheduler, alarms) -> None:
    for i in range(3):
        await scheduler.schedule(make_task(f"T{i}", T0 + (i + 1) * HOUR))

    assert await scheduler.cancel_all() == 3
    assert scheduler.active() == []
    assert alarms.pending() == []


def test_lead_minutes_are_configurable() -> None:
    scheduler = ReminderScheduler(FakeAlarmFacility(), FakeRenderer(), lead_minutes=5, clock=FakeClock(T0))
    assert scheduler.lead_ms == 5 * MIN


@pytest.mark.asyncio
async def test_whole_float_due_is_accepted(scheduler) -> None:
    reminder = await scheduler.schedule(make_task("A", float(T0 + 20 * MIN)))  # type: ignore[arg-type]

    assert reminder is not None
    assert reminder.due_at == T0 + 20 * MIN


@pytest.mark.asyncio
async def test_per_task_locks_are_released(scheduler, alarms, renderer) -> None:
    for i in range(50):
        await scheduler.cancel(f"gone-{i}")
    for i in range(20):
        await scheduler.schedule(make_task(f"T{i}", T0 + HOUR))
        await scheduler.cancel(f"T{i}")

    await scheduler.schedule(make_task("F", T0 + HOUR))
    await alarms.fire(alarms.pending("F")[0])
    await asyncio.gather(*(scheduler.schedule(make_task("C", T0 + (20 + i) * MIN)) for i in range(5)))

    assert scheduler._locks == {}
    assert [r.task_id for r in scheduler.active()] == ["C"]
    assert len(renderer.immediate) == 1
