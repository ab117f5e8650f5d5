# src/kreqo/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path

from ..auth.auth_models import ANONYMOUS_OWNER_REF
from ..core.errors import StoreError
from .task_models import TaskRow

logger = logging.getLogger(__name__)


class TaskStore:
    """
    SQLite task store: the authoritative table of task rows.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection, so concurrent writers are
      serialised by SQLite itself (AUTOINCREMENT ids never collide)
    """

    def __init__(self, db_path: str | Path = "kreqo.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except StoreError:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextlib.contextmanager
    def _connect(self, op: str) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            logger.exception("TaskStore %s: cannot open db=%s", op, self._db_path)
            raise StoreError(f"cannot open task database: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            logger.exception("TaskStore %s failed", op)
            raise StoreError(f"{op} failed: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connect("ensure_schema") as conn:
            cur = conn.cursor()
            cur.execute(
                f"""
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    user_id INTEGER NOT NULL DEFAULT {ANONYMOUS_OWNER_REF},
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    completed INTEGER NOT NULL DEFAULT 0
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

            add_col("user_id", f"INTEGER NOT NULL DEFAULT {ANONYMOUS_OWNER_REF}")
            # ALTER TABLE cannot use CURRENT_TIMESTAMP as a default.
            add_col("created_at", "TEXT NOT NULL DEFAULT ''")
            add_col("completed", "INTEGER NOT NULL DEFAULT 0")

            conn.commit()

    @staticmethod
    def _row_to_task_row(row: sqlite3.Row) -> TaskRow:
        owner = row["user_id"]
        return TaskRow(
            id=int(row["id"]),
            owner_ref=int(owner) if owner is not None else ANONYMOUS_OWNER_REF,
            title=str(row["title"] or ""),
            created_at=str(row["created_at"] or ""),
            completed=bool(row["completed"]),
        )

    # ---- public API ----

    def count_tasks(self) -> int:
        with self._connect("count_tasks") as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)

    def insert(self, title: str, owner_ref: int) -> int:
        with self._connect("insert") as conn:
            cur = conn.execute(
                "INSERT INTO tasks (title, user_id, completed) VALUES (?, ?, 0)",
                (title, int(owner_ref)),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise StoreError("SQLite did not return lastrowid for tasks insert")
            logger.debug("Task inserted id=%s owner_ref=%s", rowid, owner_ref)
            return int(rowid)

    def select_all(self) -> list[TaskRow]:
        with self._connect("select_all") as conn:
            rows = conn.execute("SELECT * FROM tasks ORDER BY id ASC").fetchall()
            return [self._row_to_task_row(r) for r in rows]

    def get(self, task_id: int) -> TaskRow | None:
        with self._connect("get") as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            return self._row_to_task_row(row) if row else None

    def update_completed(self, task_id: int, completed: bool) -> int:
        with self._connect("update_completed") as conn:
            cur = conn.execute(
                "UPDATE tasks SET completed = ? WHERE id = ?",
                (1 if completed else 0, int(task_id)),
            )
            conn.commit()
            logger.debug("Task update id=%s completed=%s affected=%s", task_id, completed, cur.rowcount)
            return int(cur.rowcount)

    def delete(self, task_id: int) -> int:
        with self._connect("delete") as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            logger.debug("Task delete id=%s affected=%s", task_id, cur.rowcount)
            return int(cur.rowcount)
