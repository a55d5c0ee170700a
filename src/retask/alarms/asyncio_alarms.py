# src/retask/alarms/asyncio_alarms.py

from __future__ import annotations

"""
Alarm facility backed by the running asyncio event loop.

Each registration is one asyncio task that sleeps until its trigger time and
then runs the callback. Exact alarms fire at the requested time; inexact ones
are coalesced to the next `inexact_window_seconds` boundary, the way power
saving batches wakeups.
"""

import asyncio
import inspect
import itertools
import logging
from dataclasses import dataclass, field

from ..core.errors import ExactAlarmDenied
from ..core.ports import AlarmCallback, Clock
from ..tasks.task_models import now_ms

logger = logging.getLogger(__name__)


@dataclass(slots=True, eq=False)
class AlarmHandle:
    token: int
    key: str
    at_ms: int
    exact: bool
    _task: asyncio.Task | None = field(default=None, repr=False)

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()


class AsyncioAlarmFacility:
    def __init__(
        self,
        *,
        exact_permitted: bool = True,
        inexact_window_seconds: float = 60.0,
        clock: Clock = now_ms,
    ) -> None:
        self._exact_permitted = bool(exact_permitted)
        self._window_ms = max(0, int(float(inexact_window_seconds) * 1000))
        self._clock = clock
        self._tokens = itertools.count(1)
        self._pending: dict[int, AlarmHandle] = {}

    def can_schedule_exact(self) -> bool:
        return self._exact_permitted

    def set_exact_permitted(self, permitted: bool) -> None:
        self._exact_permitted = bool(permitted)

    def pending(self) -> list[AlarmHandle]:
        return [h for h in self._pending.values() if h.pending]

    def _trigger_time(self, at_ms: int, exact: bool) -> int:
        if exact or self._window_ms <= 0:
            return at_ms
        # Round up to the next window boundary.
        return -(-at_ms // self._window_ms) * self._window_ms

    def register_at(
        self,
        key: str,
        at_ms: int,
        *,
        exact: bool,
        on_fire: AlarmCallback,
    ) -> AlarmHandle:
        if exact and not self._exact_permitted:
            raise ExactAlarmDenied(f"exact alarms are not permitted (key={key})")

        loop = asyncio.get_running_loop()
        handle = AlarmHandle(token=next(self._tokens), key=str(key), at_ms=int(at_ms), exact=exact)
        trigger_ms = self._trigger_time(handle.at_ms, exact)
        handle._task = loop.create_task(
            self._fire_later(handle, trigger_ms, on_fire), name=f"alarm:{handle.key}:{handle.token}"
        )
        self._pending[handle.token] = handle
        logger.debug(
            "Alarm registered key=%s at_ms=%s trigger_ms=%s exact=%s",
            handle.key,
            handle.at_ms,
            trigger_ms,
            exact,
        )
        return handle

    def cancel(self, handle: AlarmHandle) -> None:
        self._pending.pop(handle.token, None)
        if handle._task is not None and not handle._task.done():
            handle._task.cancel()
            logger.debug("Alarm cancelled key=%s token=%s", handle.key, handle.token)

    async def shutdown(self) -> None:
        handles = list(self._pending.values())
        for h in handles:
            self.cancel(h)
        tasks = [h._task for h in handles if h._task is not None]
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Alarm facility stopped (%d pending alarms cancelled)", len(handles))

    async def _fire_later(self, handle: AlarmHandle, trigger_ms: int, on_fire: AlarmCallback) -> None:
        delay_s = max(0.0, (trigger_ms - self._clock()) / 1000.0)
        await asyncio.sleep(delay_s)

        # Fired: the handle is stale from here on.
        self._pending.pop(handle.token, None)
        try:
            result = on_fire()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Alarm callback failed key=%s", handle.key)
