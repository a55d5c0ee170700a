# src/retask/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import uuid
from pathlib import Path

from .task_models import DEFAULT_COLOR_HEX, MINUTE_MS, Task, now_ms

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite task store, also the TaskRepo the upcoming window reads from.

    One row per task; `completed` tasks stay in the table but are excluded
    from the due-between and active queries. Columns added in later versions
    are appended on open. Timestamps are epoch milliseconds. Every call uses
    a fresh connection, so the store can be shared with executor threads.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    def close(self) -> None:
        """Shutdown hook (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    due_at INTEGER NOT NULL,
                    color_hex TEXT NOT NULL DEFAULT '#FFFFD6',
                    completed INTEGER NOT NULL DEFAULT 0,
                    created_at INTEGER NOT NULL DEFAULT 0,
                    updated_at INTEGER NOT NULL DEFAULT 0
                )
                """
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("color_hex", "TEXT NOT NULL DEFAULT '#FFFFD6'")
            add_col("completed", "INTEGER NOT NULL DEFAULT 0")
            add_col("created_at", "INTEGER NOT NULL DEFAULT 0")
            add_col("updated_at", "INTEGER NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_completed_due ON tasks(completed, due_at)")
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            due_at=int(row["due_at"]),
            color_hex=str(row["color_hex"] or DEFAULT_COLOR_HEX),
            completed=bool(row["completed"]),
            created_at=int(row["created_at"] or 0),
            updated_at=int(row["updated_at"] or 0),
        )

    @staticmethod
    def _clean_title(title: str) -> str:
        if not title or not title.strip():
            raise ValueError("title is required")
        return title.strip()

    def _select(self, sql: str, params: tuple = ()) -> list[Task]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(sql, params)
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    # ---- public API ----

    def count_tasks(self, *, include_completed: bool = True) -> int:
        sql = "SELECT COUNT(*) FROM tasks" if include_completed else "SELECT COUNT(*) FROM tasks WHERE completed = 0"
        conn = self._get_conn()
        try:
            (n,) = conn.execute(sql).fetchone()
            return int(n)
        finally:
            conn.close()

    def add_task(
        self,
        *,
        title: str,
        due_at: int,
        color_hex: str = DEFAULT_COLOR_HEX,
        task_id: str | None = None,
    ) -> Task:
        title = self._clean_title(title)
        now = now_ms()
        task = Task(
            id=task_id or str(uuid.uuid4()),
            title=title,
            due_at=int(due_at),
            color_hex=color_hex or DEFAULT_COLOR_HEX,
            completed=False,
            created_at=now,
            updated_at=now,
        )

        conn = self._get_conn()
        try:
            # Same id replaces the row.
            conn.execute(
                """
                INSERT OR REPLACE INTO tasks(id, title, due_at, color_hex, completed, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    task.id,
                    task.title,
                    task.due_at,
                    task.color_hex,
                    0,
                    task.created_at,
                    task.updated_at,
                ),
            )
            conn.commit()
        finally:
            conn.close()

        logger.debug("Task added id=%s due_at=%s", task.id, task.due_at)
        return task

    def create_task(
        self,
        title: str,
        due_minutes: int,
        *,
        color_hex: str = DEFAULT_COLOR_HEX,
        now: int | None = None,
    ) -> Task:
        """Create a task due `due_minutes` from now (negative = already overdue)."""
        base = now_ms() if now is None else int(now)
        return self.add_task(title=title, due_at=base + int(due_minutes) * MINUTE_MS, color_hex=color_hex)

    def get_task(self, task_id: str) -> Task | None:
        rows = self._select("SELECT * FROM tasks WHERE id = ?", (str(task_id),))
        return rows[0] if rows else None

    def update_task(
        self,
        task_id: str,
        *,
        title: str | None = None,
        due_at: int | None = None,
        color_hex: str | None = None,
    ) -> Task | None:
        fields: list[str] = []
        params: list[object] = []

        if title is not None:
            fields.append("title = ?")
            params.append(self._clean_title(title))

        if due_at is not None:
            fields.append("due_at = ?")
            params.append(int(due_at))

        if color_hex is not None:
            fields.append("color_hex = ?")
            params.append(color_hex)

        if fields:
            fields.append("updated_at = ?")
            params.append(now_ms())
            params.append(str(task_id))

            conn = self._get_conn()
            try:
                conn.execute(f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?", params)
                conn.commit()
            finally:
                conn.close()

        return self.get_task(task_id)

    def complete_task(self, task_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "UPDATE tasks SET completed = 1, updated_at = ? WHERE id = ? AND completed = 0",
                (now_ms(), str(task_id)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def delete_task(self, task_id: str) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (str(task_id),))
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def delete_all_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM tasks")
            conn.commit()
            return int(cur.rowcount)
        finally:
            conn.close()

    def list_tasks(self, *, include_completed: bool = False) -> list[Task]:
        if include_completed:
            return self._select("SELECT * FROM tasks ORDER BY due_at ASC, id ASC")
        return self._select("SELECT * FROM tasks WHERE completed = 0 ORDER BY due_at ASC, id ASC")

    def query_tasks_due_between(self, start: int, end: int) -> list[Task]:
        """Active tasks with start <= due_at < end, ordered by (due_at, id)."""
        return self._select(
            """
            SELECT *
            FROM tasks
            WHERE completed = 0
              AND due_at >= ?
              AND due_at < ?
            ORDER BY due_at ASC, id ASC
            """,
            (int(start), int(end)),
        )

    def get_all_active_tasks(self) -> list[Task]:
        return self.list_tasks(include_completed=False)
