# src/kreqo/tasks/view_model.py

"""
Reconciled view model.

Produces the single ordered list a frontend renders:

    authoritative tasks (last successful list_tasks(), in returned order)
  + one placeholder per still-pending create (no id, no owner, not interactive)

Key invariants:
- refetch is edge-triggered by the dispatcher's list_version counter, never by a timer;
  overlapping triggers are coalesced into one more fetch,
- placeholders are never matched to real rows by title: a placeholder disappears exactly
  when its create stops being pending, even if the refetch has not landed yet,
- toggles are applied locally at once; a refetch that started before the toggle was
  terminal cannot undo the local flip,
- a failed refetch keeps the last-known-good list and adds an error message next to it.

A failed toggle is NOT rolled back locally: the failure is reported as an error and the
next refetch brings the authoritative value back.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

from ..core.errors import friendly_error_message
from ..core.ports import TaskApi
from .dispatcher import Mutation, MutationDispatcher, MutationKind
from .task_models import Task

logger = logging.getLogger(__name__)

PENDING_STATUS = "Loading..."


@dataclass(frozen=True, slots=True)
class ViewEntry:
    key: str
    task_id: int | None
    title: str
    owner_name: str | None
    created_at: str | None
    completed: bool
    pending: bool = False

    @classmethod
    def from_task(cls, task: Task, completed: bool | None = None) -> ViewEntry:
        return cls(
            key=f"task:{task.id}",
            task_id=task.id,
            title=task.title,
            owner_name=task.owner.username,
            created_at=task.created_at,
            completed=task.completed if completed is None else completed,
        )

    @classmethod
    def from_pending_create(cls, mutation: Mutation) -> ViewEntry:
        return cls(
            key=f"pending:{mutation.id}",
            task_id=None,
            title=str(mutation.payload.get("title", "")),
            owner_name=None,
            created_at=None,
            completed=False,
            pending=True,
        )


@dataclass(frozen=True, slots=True)
class ViewSnapshot:
    entries: tuple[ViewEntry, ...]
    errors: tuple[str, ...]
    loaded: bool
    version: int

    @property
    def pending_count(self) -> int:
        return sum(1 for e in self.entries if e.pending)

    @property
    def confirmed(self) -> tuple[ViewEntry, ...]:
        return tuple(e for e in self.entries if not e.pending)


ViewSubscriber = Callable[[ViewSnapshot], None]


class ReconciledView:
    def __init__(self, service: TaskApi, dispatcher: MutationDispatcher) -> None:
        self._service = service
        self._dispatcher = dispatcher

        self._tasks: list[Task] = []
        self._loaded = False
        self._fetched_version = -1
        self._errors: list[str] = []

        # task_id -> (toggle mutation id, optimistic completed flag)
        self._overrides: dict[int, tuple[int, bool]] = {}

        self._refresh_task: asyncio.Task[None] | None = None
        self._dirty = False

        self._subscribers: list[ViewSubscriber] = []
        self._publish_suspended = False
        self._unsubscribe: list[Callable[[], None]] = []

    # ---- lifecycle ----

    def start(self) -> None:
        if self._unsubscribe:
            return
        self._unsubscribe = [
            self._dispatcher.list_version.subscribe(self._on_list_version),
            self._dispatcher.add_listener(self._on_dispatcher_change),
        ]

    def close(self) -> None:
        for unsub in self._unsubscribe:
            unsub()
        self._unsubscribe = []

    # ---- subscriptions ----

    def subscribe(self, callback: ViewSubscriber) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self) -> None:
        if self._publish_suspended or not self._subscribers:
            return
        snap = self.snapshot()
        for cb in list(self._subscribers):
            try:
                cb(snap)
            except Exception:
                logger.exception("view subscriber failed")

    def _on_list_version(self, version: int) -> None:
        logger.debug("list_version -> %s, scheduling refetch", version)
        self._schedule_refresh()

    def _on_dispatcher_change(self) -> None:
        for m in self._dispatcher.take_failures():
            self._errors.append(f"Could not {m.describe()}: {m.reason}")
        self._publish()

    # ---- refetch ----

    def _schedule_refresh(self) -> asyncio.Task[None]:
        self._dirty = True
        task = self._refresh_task
        if task is None or task.done():
            task = asyncio.get_running_loop().create_task(self._refresh_loop(), name="view-refresh")
            self._refresh_task = task
        return task

    async def _refresh_loop(self) -> None:
        while self._dirty:
            self._dirty = False
            await self._fetch()

    async def _fetch(self) -> None:
        version = self._dispatcher.list_version.value
        pending_ids = {m.id for m in self._dispatcher.pending(MutationKind.TOGGLE)}
        settled_at_start = {mid for mid, _ in self._overrides.values() if mid not in pending_ids}

        try:
            tasks = await self._service.list_tasks()
        except Exception as e:
            logger.warning("list_tasks failed; keeping last-known-good list (%s)", e)
            self._errors.append(friendly_error_message(e))
            self._publish()
            return

        self._tasks = tasks
        self._loaded = True
        self._fetched_version = version
        self._overrides = {
            tid: (mid, flag) for tid, (mid, flag) in self._overrides.items() if mid not in settled_at_start
        }
        logger.debug("view refreshed version=%s tasks=%s", version, len(tasks))
        self._publish()

    async def refresh(self) -> ViewSnapshot:
        """Fetch the authoritative list now (initial load / manual reload)."""
        await self._schedule_refresh()
        return self.snapshot()

    async def settle(self) -> ViewSnapshot:
        """Wait for all in-flight mutations and the refetches they trigger."""
        while True:
            await self._dispatcher.drain()
            task = self._refresh_task
            if task is not None and not task.done():
                await task
                continue
            if self._dispatcher.in_flight == 0:
                return self.snapshot()

    # ---- core-exposed operations ----

    async def list_tasks(self) -> list[Task]:
        return await self._service.list_tasks()

    def submit_create(self, title: str) -> Mutation:
        return self._dispatcher.submit_create(title)

    def submit_delete(self, task_id: int) -> Mutation:
        return self._dispatcher.submit_delete(task_id)

    def submit_toggle(self, task_id: int, completed: bool) -> Mutation:
        # No snapshot may show the pre-toggle value: publish once the override is stored.
        self._publish_suspended = True
        try:
            mutation = self._dispatcher.submit_toggle(task_id, completed)
            self._overrides[int(task_id)] = (mutation.id, bool(completed))
        finally:
            self._publish_suspended = False
        self._publish()
        return mutation

    # ---- rendering ----

    def snapshot(self) -> ViewSnapshot:
        entries: list[ViewEntry] = []
        for task in self._tasks:
            override = self._overrides.get(task.id)
            entries.append(ViewEntry.from_task(task, override[1] if override else None))

        for m in self._dispatcher.pending(MutationKind.CREATE):
            entries.append(ViewEntry.from_pending_create(m))

        return ViewSnapshot(
            entries=tuple(entries),
            errors=tuple(self._errors),
            loaded=self._loaded,
            version=self._fetched_version,
        )

    def reconciled_view(self) -> tuple[ViewEntry, ...]:
        return self.snapshot().entries

    def dismiss_errors(self) -> list[str]:
        out, self._errors = self._errors, []
        if out:
            self._publish()
        return out
