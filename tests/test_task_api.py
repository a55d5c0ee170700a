# tests/test_task_api.py

from __future__ import annotations

import pytest

from retask.tasks import task_api
from retask.tasks.task_models import MINUTE_MS


@pytest.mark.asyncio
async def test_add_task_persists_and_schedules(state, alarms) -> None:
    task = await task_api.add_task(state, title="Water plants", due_minutes=60)

    assert state.task_store.get_task(task.id) is not None
    reminder = state.scheduler.get(task.id)
    assert reminder is not None
    assert reminder.fire_at == task.due_at - 10 * MINUTE_MS
    assert len(alarms.pending(task.id)) == 1


@pytest.mark.asyncio
async def test_add_task_due_soon_is_stored_without_reminder(state) -> None:
    task = await task_api.add_task(state, title="Now-ish", due_minutes=5)

    assert state.task_store.get_task(task.id) is not None
    assert state.scheduler.get(task.id) is None


@pytest.mark.asyncio
async def test_scheduling_failure_is_logged_not_raised(state, alarms) -> None:
    alarms.fail_register = True

    task = await task_api.add_task(state, title="Still saved", due_minutes=60)

    assert state.task_store.get_task(task.id) is not None
    assert state.scheduler.get(task.id) is None


@pytest.mark.asyncio
async def test_snooze_moves_due_and_reschedules(state, alarms) -> None:
    task = await task_api.add_task(state, title="Stretch", due_minutes=60)

    snoozed = await task_api.snooze_task(state, task.id)

    assert snoozed is not None
    assert snoozed.due_at == task.due_at + 15 * MINUTE_MS
    assert state.scheduler.get(task.id).due_at == snoozed.due_at
    assert len(alarms.pending(task.id)) == 1


@pytest.mark.asyncio
async def test_edit_reschedules_from_now(state) -> None:
    task = await task_api.add_task(state, title="Draft", due_minutes=60)

    edited = await task_api.edit_task(state, task.id, title="Final draft", due_minutes=120)

    assert edited is not None
    assert edited.title == "Final draft"
    assert state.scheduler.get(task.id).title == "Final draft"
    assert state.scheduler.get(task.id).due_at == edited.due_at


@pytest.mark.asyncio
async def test_complete_cancels_reminder(state, alarms) -> None:
    task = await task_api.add_task(state, title="Ship it", due_minutes=60)

    assert await task_api.complete_task(state, task.id) is True

    assert state.scheduler.get(task.id) is None
    assert alarms.pending(task.id) == []
    assert state.task_store.get_task(task.id).completed is True
    assert await task_api.snooze_task(state, task.id) is None


@pytest.mark.asyncio
async def test_delete_cancels_reminder(state, alarms) -> None:
    task = await task_api.add_task(state, title="Old idea", due_minutes=60)

    assert await task_api.delete_task(state, task.id) is True

    assert state.scheduler.get(task.id) is None
    assert alarms.pending() == []


@pytest.mark.asyncio
async def test_reschedule_all_active_after_restart(state, alarms) -> None:
    state.task_store.create_task("Future", 90)
    state.task_store.create_task("Too soon", 3)
    state.task_store.create_task("Overdue", -30)
    done = state.task_store.create_task("Done", 90)
    state.task_store.complete_task(done.id)

    assert await task_api.reschedule_all_active(state) == 1
    assert [r.title for r in state.scheduler.active()] == ["Future"]


@pytest.mark.asyncio
async def test_sample_tasks_only_schedule_future(state) -> None:
    tasks = await task_api.add_sample_tasks(state)

    assert len(tasks) == len(task_api.SAMPLE_TASKS)
    # Only the sample due in 45 minutes is beyond the 10 minute lead time.
    assert [r.title for r in state.scheduler.active()] == ["Call the bank"]
