# src/kreqo/tasks/dispatcher.py

"""
Mutation dispatcher.

Turns one user intent (create / toggle / delete) into a tracked unit of work:

    submit() -> PENDING -> CONFIRMED | FAILED(reason)

Key invariants:
- submit() never blocks; the service call runs as an asyncio task,
  and tasks are started in submission order (completions may arrive in any order),
- every mutation makes exactly one terminal transition; there are no retries and no cancellation,
- each terminal transition bumps a version counter in the same synchronous step,
  so two mutations finishing "at the same time" produce two observable bumps.

Two counters are kept on purpose:
- list_version   (create + delete): observers refetch the authoritative list
- toggle_version (toggle):          already applied optimistically, no refetch needed
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from ..core.errors import friendly_error_message
from ..core.ports import TaskApi

logger = logging.getLogger(__name__)

# Unreported failures kept for take_failures(); older ones are dropped.
MAX_UNREPORTED_FAILURES = 100


class MutationKind(StrEnum):
    CREATE = "create"
    TOGGLE = "toggle"
    DELETE = "delete"


class MutationState(StrEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass(slots=True, eq=False)
class Mutation:
    id: int
    kind: MutationKind
    payload: dict[str, Any]
    state: MutationState = MutationState.PENDING
    reason: str | None = None
    error: BaseException | None = None
    result: Any = None
    submitted_at: float = field(default_factory=time.time)

    @property
    def pending(self) -> bool:
        return self.state is MutationState.PENDING

    @property
    def failed(self) -> bool:
        return self.state is MutationState.FAILED

    def describe(self) -> str:
        if self.kind is MutationKind.CREATE:
            return f'create "{self.payload.get("title", "")}"'
        if self.kind is MutationKind.TOGGLE:
            verb = "complete" if self.payload.get("completed") else "reopen"
            return f"{verb} #{self.payload.get('task_id')}"
        return f"delete #{self.payload.get('task_id')}"


class VersionCounter:
    """Monotonic counter with synchronous subscribers (called with the new value)."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._value = 0
        self._lock = threading.Lock()
        self._subscribers: list[Callable[[int], None]] = []

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def subscribe(self, callback: Callable[[int], None]) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def bump(self) -> int:
        with self._lock:
            self._value += 1
            value = self._value
            subscribers = list(self._subscribers)

        for cb in subscribers:
            try:
                cb(value)
            except Exception:
                logger.exception("%s version subscriber failed", self.name)
        return value


class MutationDispatcher:
    def __init__(self, service: TaskApi, *, max_failures: int = MAX_UNREPORTED_FAILURES) -> None:
        self._service = service
        self.list_version = VersionCounter("list")
        self.toggle_version = VersionCounter("toggle")

        self._ids = itertools.count(1)
        self._pending: dict[int, Mutation] = {}
        self._running: dict[int, asyncio.Task[None]] = {}
        self._failures: deque[Mutation] = deque(maxlen=max(1, int(max_failures)))
        self._listeners: list[Callable[[], None]] = []

    # ---- observers ----

    def add_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Called whenever the pending set changes (submit or terminal transition)."""
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    def _notify(self) -> None:
        for cb in list(self._listeners):
            try:
                cb()
            except Exception:
                logger.exception("dispatcher listener failed")

    # ---- submission ----

    def submit(self, kind: MutationKind, payload: dict[str, Any]) -> Mutation:
        """
        Track and start one mutation. Must be called from the running event loop.
        Returns immediately with the PENDING mutation.
        """
        loop = asyncio.get_running_loop()
        mutation = Mutation(id=next(self._ids), kind=MutationKind(kind), payload=dict(payload))
        self._pending[mutation.id] = mutation
        self._running[mutation.id] = loop.create_task(
            self._run(mutation), name=f"mutation-{mutation.id}-{mutation.kind.value}"
        )
        logger.debug("Mutation %s submitted: %s", mutation.id, mutation.describe())
        self._notify()
        return mutation

    def submit_create(self, title: str) -> Mutation:
        return self.submit(MutationKind.CREATE, {"title": title})

    def submit_toggle(self, task_id: int, completed: bool) -> Mutation:
        return self.submit(MutationKind.TOGGLE, {"task_id": int(task_id), "completed": bool(completed)})

    def submit_delete(self, task_id: int) -> Mutation:
        return self.submit(MutationKind.DELETE, {"task_id": int(task_id)})

    async def _call(self, mutation: Mutation) -> Any:
        p = mutation.payload
        if mutation.kind is MutationKind.CREATE:
            return await self._service.create_task(p["title"])
        if mutation.kind is MutationKind.TOGGLE:
            return await self._service.set_completed(p["task_id"], p["completed"])
        return await self._service.delete_task(p["task_id"])

    async def _run(self, mutation: Mutation) -> None:
        try:
            result = await self._call(mutation)
        except Exception as e:
            self._finish(mutation, MutationState.FAILED, error=e)
        else:
            self._finish(mutation, MutationState.CONFIRMED, result=result)
        finally:
            self._running.pop(mutation.id, None)

    def _finish(
        self,
        mutation: Mutation,
        state: MutationState,
        *,
        result: Any = None,
        error: BaseException | None = None,
    ) -> None:
        if not mutation.pending:
            logger.error("Mutation %s already terminal (%s); ignoring %s", mutation.id, mutation.state, state)
            return

        mutation.state = state
        mutation.result = result
        if error is not None:
            mutation.error = error
            mutation.reason = friendly_error_message(error)
        self._pending.pop(mutation.id, None)

        if state is MutationState.FAILED:
            self._failures.append(mutation)
            logger.info("Mutation %s failed: %s (%s)", mutation.id, mutation.describe(), mutation.reason)
        else:
            logger.debug("Mutation %s confirmed: %s", mutation.id, mutation.describe())

        counter = self.toggle_version if mutation.kind is MutationKind.TOGGLE else self.list_version
        counter.bump()
        self._notify()

    # ---- inspection ----

    def pending(self, kind: MutationKind | None = None) -> list[Mutation]:
        """Still-pending mutations in submission order."""
        return [m for m in self._pending.values() if kind is None or m.kind is kind]

    def take_failures(self) -> list[Mutation]:
        """
        Failed mutations not yet surfaced; each is returned exactly once.

        Meant to be drained by a consumer such as ReconciledView. Without one only
        the newest max_failures entries are kept.
        """
        out = list(self._failures)
        self._failures.clear()
        return out

    @property
    def in_flight(self) -> int:
        return len(self._running)

    async def wait(self, mutation: Mutation) -> Mutation:
        task = self._running.get(mutation.id)
        if task is not None:
            await asyncio.shield(task)
        return mutation

    async def drain(self) -> None:
        """Wait until every submitted mutation (including ones submitted meanwhile) is terminal."""
        while self._running:
            await asyncio.gather(*list(self._running.values()), return_exceptions=True)

    async def close(self) -> None:
        """Wait for in-flight work, then drop listeners. Nothing is cancelled."""
        await self.drain()
        self._listeners.clear()
