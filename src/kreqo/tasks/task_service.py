# src/kreqo/tasks/task_service.py

"""
Task service.

Mediates between the identity gateway and the task store:
- stamps the acting identity onto new rows (anonymous sentinel if no session),
- optionally enforces ownership on toggle/delete (see OwnershipPolicy),
- assembles display tasks by resolving each row's owner reference.

The gateway is passed in explicitly; this module never reads global/session state.
Errors from the gateway and the store are surfaced untranslated.
"""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum

from ..auth.auth_models import ANONYMOUS_OWNER_REF, GUEST
from ..core.errors import NotFound, PermissionDenied, ValidationError
from ..core.ports import IdentityGateway, TaskRepo
from .task_models import Task, TaskRow

logger = logging.getLogger(__name__)


class OwnershipPolicy(StrEnum):
    """
    Who may toggle/delete a task.

    OPEN matches the historical behaviour: any caller, authenticated or not,
    may mutate any task. OWNER restricts mutations to the task's owner
    (anonymous tasks stay mutable by anonymous callers).
    """

    OPEN = "open"
    OWNER = "owner"

    @classmethod
    def from_config(cls, raw: str | None) -> OwnershipPolicy:
        if not raw:
            return cls.OPEN
        try:
            return cls(raw.strip().lower())
        except ValueError:
            logger.warning("Unknown ownership policy %r; falling back to open", raw)
            return cls.OPEN


class TaskService:
    def __init__(
        self,
        identity: IdentityGateway,
        store: TaskRepo,
        *,
        policy: OwnershipPolicy = OwnershipPolicy.OPEN,
        create_delay_seconds: float = 0.0,
    ) -> None:
        self._identity = identity
        self._store = store
        self.policy = policy
        self._create_delay = max(0.0, float(create_delay_seconds))

    async def _acting_owner_ref(self) -> int:
        ident = await self._identity.current_identity()
        return ident.id if ident is not None else ANONYMOUS_OWNER_REF

    async def _assemble(self, row: TaskRow) -> Task:
        owner = await self._identity.resolve_identity(row.owner_ref)
        return Task(
            id=row.id,
            owner=owner or GUEST,
            title=row.title,
            created_at=row.created_at,
            completed=row.completed,
        )

    async def _check_owner(self, task_id: int) -> bool:
        """
        Returns False when the row does not exist.
        Raises PermissionDenied when the policy forbids the acting identity.
        """
        if self.policy is OwnershipPolicy.OPEN:
            return True
        acting = await self._acting_owner_ref()
        row = await asyncio.to_thread(self._store.get, task_id)
        if row is None:
            return False
        if row.owner_ref != acting:
            raise PermissionDenied(f"Task {task_id} belongs to someone else.")
        return True

    # ---- public API ----

    async def list_tasks(self) -> list[Task]:
        rows = await asyncio.to_thread(self._store.select_all)
        # gather() keeps input order, so the list stays in storage order.
        return list(await asyncio.gather(*(self._assemble(r) for r in rows)))

    async def create_task(self, title: str) -> int:
        title = (title or "").strip()
        if not title:
            raise ValidationError("Title must not be empty.")

        owner_ref = await self._acting_owner_ref()

        if self._create_delay:
            # Fake API delay.
            await asyncio.sleep(self._create_delay)

        task_id = await asyncio.to_thread(self._store.insert, title, owner_ref)
        logger.info("Task created id=%s owner_ref=%s", task_id, owner_ref)
        return task_id

    async def set_completed(self, task_id: int, completed: bool) -> None:
        if not await self._check_owner(task_id):
            raise NotFound(f"Task {task_id} not found.")
        affected = await asyncio.to_thread(self._store.update_completed, task_id, bool(completed))
        if affected == 0:
            raise NotFound(f"Task {task_id} not found.")
        logger.info("Task %s completed=%s", task_id, completed)

    async def delete_task(self, task_id: int) -> None:
        # Deleting a missing id is a successful no-op.
        if not await self._check_owner(task_id):
            logger.debug("delete_task: id=%s already absent", task_id)
            return
        affected = await asyncio.to_thread(self._store.delete, task_id)
        if affected == 0:
            logger.debug("delete_task: id=%s already absent", task_id)
            return
        logger.info("Task %s deleted", task_id)
