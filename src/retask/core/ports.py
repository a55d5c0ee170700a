# src/retask/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the reminder core.

The scheduler and the window aggregator depend on Protocols instead of
concrete implementations, so storage, alarms and notification delivery stay
swappable and tests can run against in-memory fakes.
"""

from typing import Any, Awaitable, Callable, Protocol, Sequence

from ..tasks.task_models import Task

AlarmCallback = Callable[[], Awaitable[None] | None]


class TaskRepo(Protocol):
    """Read side of task storage used by the reminder core."""

    def query_tasks_due_between(self, start: int, end: int) -> Sequence[Task]: ...
    def get_all_active_tasks(self) -> Sequence[Task]: ...


class NotificationRenderer(Protocol):
    """
    Presentation side: shows reminders and the upcoming-tasks summary.

    Both calls are fire-and-forget. Implementations swallow (and log) their
    own delivery failures.
    """

    def render_immediate(self, task_id: str, title: str, due_text: str) -> Awaitable[None]: ...
    def render_summary(self, ordered_tasks: Sequence[Task]) -> Awaitable[None]: ...


class AlarmFacility(Protocol):
    """
    Timer service that calls back at an absolute time.

    register_at() raises ExactAlarmDenied when exact timing is requested but
    not permitted; any other exception is a registration failure.
    """

    def can_schedule_exact(self) -> bool: ...

    def register_at(
            self,
            key: str,
            at_ms: int,
            *,
            exact: bool,
            on_fire: AlarmCallback,
    ) -> Any: ...

    def cancel(self, handle: Any) -> None: ...


Clock = Callable[[], int]
# Returns "now" as epoch milliseconds.
