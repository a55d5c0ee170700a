# src/retask/tasks/task_models.py

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

DEFAULT_COLOR_HEX = "#FFFFD6"

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(slots=True)
class Task:
    id: str
    title: str
    due_at: int  # epoch milliseconds
    color_hex: str = DEFAULT_COLOR_HEX
    completed: bool = False
    created_at: int = 0
    updated_at: int = 0


@dataclass(slots=True, frozen=True)
class ScheduledReminder:
    """
    One pending alarm owned by the reminder scheduler.

    `handle` is whatever the alarm facility returned; it is only ever passed
    back to that facility for cancellation.
    """

    task_id: str
    title: str
    due_at: int
    fire_at: int
    handle: Any
    exact: bool
    # Registration sequence number; lets a late alarm recognize it was superseded.
    seq: int = field(default=0, compare=False, repr=False)


@dataclass(slots=True, frozen=True)
class TaskDue:
    """Emitted when a reminder fires."""

    task_id: str
    title: str
    due_at: int


@dataclass(slots=True, frozen=True)
class WindowSnapshot:
    now: int
    summary: list[Task] = field(default_factory=list)
    imminent: list[Task] = field(default_factory=list)


@dataclass(slots=True, frozen=True)
class SummaryPayload:
    title: str
    text: str
    lines: list[str] = field(default_factory=list)
    overflow: str | None = None

    @property
    def is_empty(self) -> bool:
        return not self.lines
