# src/taskpilot/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from pathlib import Path

from .task_models import MAX_NAME_LENGTH, Task, TaskState

logger = logging.getLogger(__name__)


class StaleTaskError(RuntimeError):
    """Raised when a conditional state update finds a different version than expected."""

    def __init__(self, task_id: int, expected_version: int) -> None:
        super().__init__(f"Task {task_id} changed since version {expected_version}")
        self.task_id = task_id
        self.expected_version = expected_version


class TaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Ordering:
    - every listing is newest-first (created_at DESC, id DESC)

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    state TEXT NOT NULL DEFAULT 'Not Started',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    version INTEGER NOT NULL DEFAULT 1
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("state", "TEXT NOT NULL DEFAULT 'Not Started'")
            add_col("created_at", "REAL NOT NULL DEFAULT 0")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")
            add_col("version", "INTEGER NOT NULL DEFAULT 1")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_state ON tasks(state, created_at)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_name ON tasks(name)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            name=str(row["name"] or ""),
            state=TaskState.from_db(row["state"], task_id=int(row["id"])),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            version=int(row["version"] or 1),
        )

    # ---- public API ----

    def count_tasks(self, state: TaskState | None = None) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if state is None:
                cur.execute("SELECT COUNT(*) FROM tasks")
            else:
                cur.execute("SELECT COUNT(*) FROM tasks WHERE state = ?", (state.value,))
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def insert(self, name: str, *, state: TaskState = TaskState.NOT_STARTED) -> Task:
        clean = (name or "").strip()
        if not clean:
            raise ValueError("name is required")
        if len(clean) > MAX_NAME_LENGTH:
            raise ValueError(f"name cannot exceed {MAX_NAME_LENGTH} characters")

        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO tasks(name, state, created_at, updated_at, version)
                VALUES (?, ?, ?, ?, 1)
                """,
                (clean, state.value, now, now),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug("Task added id=%s state=%s", task_id, state.value)
            return Task(
                id=task_id,
                name=clean,
                state=state,
                created_at=now,
                updated_at=now,
                version=1,
            )
        finally:
            conn.close()

    def get_by_id(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def find_all(self, state: TaskState | None = None) -> list[Task]:
        """All tasks (optionally with the given state), newest-first."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if state is None:
                cur.execute("SELECT * FROM tasks ORDER BY created_at DESC, id DESC")
            else:
                cur.execute(
                    """
                    SELECT *
                    FROM tasks
                    WHERE state = ?
                    ORDER BY created_at DESC, id DESC
                    """,
                    (state.value,),
                )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def update_state(
        self,
        task_id: int,
        new_state: TaskState,
        *,
        expected_version: int | None = None,
    ) -> Task | None:
        """
        Write a new state and bump updated_at/version.

        With expected_version set the write is conditional: if the row exists
        but carries another version, StaleTaskError is raised.
        Returns the updated task, or None if the row does not exist.
        """
        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if expected_version is None:
                cur.execute(
                    """
                    UPDATE tasks
                    SET state = ?, updated_at = ?, version = version + 1
                    WHERE id = ?
                    """,
                    (new_state.value, now, int(task_id)),
                )
            else:
                cur.execute(
                    """
                    UPDATE tasks
                    SET state = ?, updated_at = ?, version = version + 1
                    WHERE id = ?
                      AND version = ?
                    """,
                    (new_state.value, now, int(task_id), int(expected_version)),
                )
            conn.commit()
            updated = cur.rowcount == 1
        finally:
            conn.close()

        if updated:
            logger.debug("Task state updated id=%s state=%s", task_id, new_state.value)
            return self.get_by_id(task_id)

        if expected_version is not None and self.get_by_id(task_id) is not None:
            raise StaleTaskError(int(task_id), int(expected_version))
        return None

    def delete_by_id(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),))
            row = cur.fetchone()
            if row is None:
                return None
            cur.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            logger.debug("Task deleted id=%s", task_id)
            return self._row_to_task(row)
        finally:
            conn.close()
