# src/kreqo/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps the identity backend and storage swappable and makes testing easier.
"""

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..auth.auth_models import Identity, UserRecord
    from ..tasks.task_models import Task, TaskRow


class IdentityGateway(Protocol):
    """Who is acting, and who owns a stored owner reference."""

    async def current_identity(self) -> Identity | None: ...

    async def resolve_identity(self, ref: int) -> Identity | None: ...


class UserRepo(Protocol):
    """Accounts and session tokens. All methods raise StoreError on I/O failure."""

    def create_user(self, username: str, password_hash: str) -> int: ...
    def get_user(self, user_id: int) -> UserRecord | None: ...
    def get_user_by_username(self, username: str) -> UserRecord | None: ...
    def create_session(self, token: str, user_id: int) -> None: ...
    def get_session_user_id(self, token: str) -> int | None: ...
    def delete_session(self, token: str) -> None: ...


class TaskRepo(Protocol):
    """Durable, orderable table of task rows. All methods raise StoreError on I/O failure."""

    def insert(self, title: str, owner_ref: int) -> int: ...
    def select_all(self) -> list[TaskRow]: ...
    def get(self, task_id: int) -> TaskRow | None: ...
    def update_completed(self, task_id: int, completed: bool) -> int: ...
    def delete(self, task_id: int) -> int: ...


class TaskApi(Protocol):
    """What the dispatcher and the view model need from the task service."""

    async def list_tasks(self) -> list[Task]: ...
    async def create_task(self, title: str) -> int: ...
    async def set_completed(self, task_id: int, completed: bool) -> None: ...
    async def delete_task(self, task_id: int) -> None: ...
