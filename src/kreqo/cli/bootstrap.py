# src/kreqo/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete stores, the identity gateway and the task pipeline into AppState.
"""

from __future__ import annotations

import logging

from ..auth.gateway import AuthGateway
from ..auth.user_store import UserStore
from ..config import get_settings
from ..core.state import AppState
from ..tasks.dispatcher import MutationDispatcher
from ..tasks.task_service import OwnershipPolicy, TaskService
from ..tasks.task_store import TaskStore
from ..tasks.view_model import ReconciledView

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.session_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    The returned state has no event loop yet (runner is None).
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    users = UserStore(settings.db_path)
    task_store = TaskStore(settings.db_path)
    identity = AuthGateway(
        users,
        bcrypt_rounds=settings.bcrypt_rounds,
        session_file=settings.session_path,
    )
    policy = OwnershipPolicy.from_config(getattr(settings, "ownership_policy", "open"))
    service = TaskService(
        identity,
        task_store,
        policy=policy,
        create_delay_seconds=settings.create_delay_seconds,
    )
    dispatcher = MutationDispatcher(service)
    view = ReconciledView(service, dispatcher)

    logger.debug("State wired (policy=%s, create_delay=%.2fs)", policy.value, settings.create_delay_seconds)

    return AppState(
        settings=settings,
        users=users,
        task_store=task_store,
        identity=identity,
        service=service,
        dispatcher=dispatcher,
        view=view,
    )
