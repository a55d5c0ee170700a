# src/retask/notify/console_renderer.py

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import TextIO

from ..core.ports import Clock
from ..tasks.task_models import Task, now_ms
from .formatting import DEFAULT_SUMMARY_LINES, build_summary_payload, summary_as_text, summary_key

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


class ConsoleNotificationRenderer:
    """
    Prints reminders and the upcoming-tasks summary to the terminal.

    The summary is only printed when the listed tasks change, so the periodic
    refresh does not flood the console.
    """

    def __init__(
        self,
        *,
        stream: TextIO | None = None,
        max_summary_lines: int = DEFAULT_SUMMARY_LINES,
        clock: Clock = now_ms,
    ) -> None:
        self._stream = stream
        self._max_lines = max_summary_lines
        self._clock = clock
        self._last_summary: tuple | None = None

    def _print(self, text: str) -> None:
        print(f"[{_ts_local()}] {text}", file=self._stream, flush=True)

    async def render_immediate(self, task_id: str, title: str, due_text: str) -> None:
        try:
            self._print(f"[REMINDER] {title or '(untitled)'} - {due_text}")
        except Exception:
            logger.warning("Console reminder output failed task=%s", task_id, exc_info=True)

    async def render_summary(self, ordered_tasks: Sequence[Task]) -> None:
        key = summary_key(ordered_tasks)
        if key == self._last_summary:
            return
        payload = build_summary_payload(ordered_tasks, self._clock(), max_lines=self._max_lines)
        try:
            self._print(summary_as_text(payload))
            self._last_summary = key
        except Exception:
            logger.warning("Console summary output failed", exc_info=True)
