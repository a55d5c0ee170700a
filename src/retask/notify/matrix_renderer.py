# src/retask/notify/matrix_renderer.py

from __future__ import annotations

import logging
from collections.abc import Sequence

from nio import AsyncClient, RoomSendError

from ..core.ports import Clock
from ..tasks.task_models import Task, now_ms
from .formatting import DEFAULT_SUMMARY_LINES, build_summary_payload, summary_as_text, summary_key

logger = logging.getLogger(__name__)


class MatrixNotificationRenderer:
    """
    Delivers reminders as m.notice messages to Matrix rooms.

    Target rooms: the configured list, or every joined room when the list is
    empty. A Matrix room has no persistent notification to update, so the
    summary is posted only when the listed tasks change.
    """

    def __init__(
        self,
        client: AsyncClient,
        *,
        room_ids: Sequence[str] = (),
        max_summary_lines: int = DEFAULT_SUMMARY_LINES,
        clock: Clock = now_ms,
    ) -> None:
        self._client = client
        self._room_ids = [r.strip() for r in room_ids if r and r.strip()]
        self._max_lines = max_summary_lines
        self._clock = clock
        self._last_summary: tuple | None = None

    def _target_rooms(self) -> list[str]:
        if self._room_ids:
            return list(self._room_ids)
        return list((self._client.rooms or {}).keys())

    async def _send_notice(self, text: str) -> bool:
        rooms = self._target_rooms()
        if not rooms:
            logger.warning("Matrix renderer: no target rooms, notice skipped")
            return False

        delivered = False
        for room_id in rooms:
            try:
                resp = await self._client.room_send(
                    room_id=room_id,
                    message_type="m.room.message",
                    content={"msgtype": "m.notice", "body": text},
                    ignore_unverified_devices=True,
                )
            except Exception:
                logger.exception("Matrix send failed room=%s", room_id)
                continue

            if isinstance(resp, RoomSendError):
                logger.warning("Matrix send rejected room=%s: %s", room_id, resp.message)
                continue
            delivered = True
        return delivered

    async def render_immediate(self, task_id: str, title: str, due_text: str) -> None:
        if await self._send_notice(f"Reminder: {title or '(untitled)'} - {due_text}"):
            logger.info("Matrix reminder sent task=%s", task_id)

    async def render_summary(self, ordered_tasks: Sequence[Task]) -> None:
        key = summary_key(ordered_tasks)
        if key == self._last_summary:
            return
        payload = build_summary_payload(ordered_tasks, self._clock(), max_lines=self._max_lines)
        if await self._send_notice(summary_as_text(payload)):
            self._last_summary = key
