# src/retask/notify/formatting.py

"""
Human-readable text for reminders and the upcoming-tasks summary.

Renderers share these helpers so console and Matrix output read the same.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from ..tasks.task_models import MINUTE_MS, SummaryPayload, Task

SUMMARY_TITLE = "Upcoming Tasks"
EMPTY_SUMMARY_TEXT = "No upcoming tasks for today."
DEFAULT_SUMMARY_LINES = 5


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def due_text(due_at: int, now: int) -> str:
    """
    "Due in N minutes", "Due now" or "Due N minutes ago".

    The minute difference is truncated toward zero, so anything less than a
    full minute away (either side) reads as "Due now".
    """
    diff_ms = int(now) - int(due_at)
    minutes = abs(diff_ms) // MINUTE_MS

    if minutes == 0:
        return "Due now"
    if diff_ms < 0:
        return f"Due in {_plural(minutes, 'minute')}"
    return f"Due {_plural(minutes, 'minute')} ago"


def format_minutes(minutes: int) -> str:
    """45 -> "45 minutes", 120 -> "2 hours", 61 -> "1 hour 1 minute"."""
    minutes = int(minutes)
    if minutes < 60:
        return _plural(minutes, "minute")
    hours, rest = divmod(minutes, 60)
    if rest == 0:
        return _plural(hours, "hour")
    return f"{_plural(hours, 'hour')} {_plural(rest, 'minute')}"


def format_date_time(ts_ms: int) -> str:
    """Local time as e.g. "Mon, Jan 5, 2026 at 3:04 PM"."""
    dt = datetime.fromtimestamp(ts_ms / 1000).astimezone()
    hour12 = dt.hour % 12 or 12
    return (
        f"{dt:%a}, {dt:%b} {dt.day}, {dt.year} "
        f"at {hour12}:{dt.minute:02d} {'AM' if dt.hour < 12 else 'PM'}"
    )


def build_summary_payload(
    tasks: Sequence[Task],
    now: int,
    *,
    max_lines: int = DEFAULT_SUMMARY_LINES,
) -> SummaryPayload:
    """Summary for an already ordered task list (see compute_window)."""
    if not tasks:
        return SummaryPayload(title=SUMMARY_TITLE, text=EMPTY_SUMMARY_TEXT)

    limit = max(1, int(max_lines))
    lines = [f"{t.title} - {due_text(t.due_at, now)}" for t in tasks[:limit]]
    overflow = f"+ {len(tasks) - limit} more" if len(tasks) > limit else None

    return SummaryPayload(
        title=SUMMARY_TITLE,
        text=f"{_plural(len(tasks), 'task')} coming up",
        lines=lines,
        overflow=overflow,
    )


def summary_key(tasks: Sequence[Task]) -> tuple:
    """Identity of a summary; relative due texts change every minute, this does not."""
    return tuple((t.id, t.title, t.due_at) for t in tasks)


def summary_as_text(payload: SummaryPayload) -> str:
    """Plain multi-line rendering used by text-only channels."""
    parts = [f"{payload.title}: {payload.text}"]
    parts.extend(f"  - {line}" for line in payload.lines)
    if payload.overflow:
        parts.append(f"  {payload.overflow}")
    return "\n".join(parts)
