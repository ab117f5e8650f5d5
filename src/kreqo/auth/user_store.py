# src/kreqo/auth/user_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path

from ..core.errors import StoreError, ValidationError
from .auth_models import UserRecord

logger = logging.getLogger(__name__)


class UserStore:
    """
    SQLite user + session store.

    Tables:
    - users(id, username UNIQUE, password, created_at)
    - sessions(token PRIMARY KEY, user_id, created_at)

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "kreqo.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("UserStore ready db=%s", self._db_path)

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
            logger.exception("UserStore %s: cannot open db=%s", op, self._db_path)
            raise StoreError(f"cannot open user database: {e}") from e
        try:
            yield conn
        except sqlite3.Error as e:
            logger.exception("UserStore %s failed", op)
            raise StoreError(f"{op} failed: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connect("ensure_schema") as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    username TEXT NOT NULL UNIQUE,
                    password TEXT NOT NULL,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS sessions (
                    token TEXT PRIMARY KEY,
                    user_id INTEGER NOT NULL,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
                """
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id)")
            conn.commit()

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> UserRecord:
        return UserRecord(
            id=int(row["id"]),
            username=str(row["username"]),
            password_hash=str(row["password"]),
            created_at=str(row["created_at"] or ""),
        )

    # ---- users ----

    def create_user(self, username: str, password_hash: str) -> int:
        with self._connect("create_user") as conn:
            try:
                cur = conn.execute(
                    "INSERT INTO users (username, password) VALUES (?, ?)",
                    (username, password_hash),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                raise ValidationError("Username is already taken.") from e
            rowid = cur.lastrowid
            if rowid is None:
                raise StoreError("SQLite did not return lastrowid for users insert")
            logger.debug("User created id=%s username=%s", rowid, username)
            return int(rowid)

    def get_user(self, user_id: int) -> UserRecord | None:
        with self._connect("get_user") as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (int(user_id),)).fetchone()
            return self._row_to_user(row) if row else None

    def get_user_by_username(self, username: str) -> UserRecord | None:
        with self._connect("get_user_by_username") as conn:
            row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
            return self._row_to_user(row) if row else None

    # ---- sessions ----

    def create_session(self, token: str, user_id: int) -> None:
        with self._connect("create_session") as conn:
            conn.execute(
                "INSERT OR REPLACE INTO sessions (token, user_id) VALUES (?, ?)",
                (token, int(user_id)),
            )
            conn.commit()

    def get_session_user_id(self, token: str) -> int | None:
        if not token:
            return None
        with self._connect("get_session_user_id") as conn:
            row = conn.execute("SELECT user_id FROM sessions WHERE token = ?", (token,)).fetchone()
            return int(row["user_id"]) if row else None

    def delete_session(self, token: str) -> None:
        if not token:
            return
        with self._connect("delete_session") as conn:
            conn.execute("DELETE FROM sessions WHERE token = ?", (token,))
            conn.commit()
