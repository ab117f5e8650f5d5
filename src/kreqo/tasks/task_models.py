# src/kreqo/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass

from ..auth.auth_models import Identity


@dataclass(frozen=True, slots=True)
class TaskRow:
    """A task as stored: the owner is only a numeric reference."""

    id: int
    owner_ref: int
    title: str
    created_at: str
    completed: bool


@dataclass(frozen=True, slots=True)
class Task:
    """A task ready for display: the owner reference has been resolved."""

    id: int
    owner: Identity
    title: str
    created_at: str
    completed: bool
