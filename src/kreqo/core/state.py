# src/kreqo/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..auth.gateway import AuthGateway
from ..auth.user_store import UserStore
from ..tasks.dispatcher import MutationDispatcher
from ..tasks.task_service import TaskService
from ..tasks.task_store import TaskStore
from ..tasks.view_model import ReconciledView

if TYPE_CHECKING:
    from ..connectors.loop_runner import BackgroundLoop


@dataclass
class AppState:
    """
    Runtime state shared by frontends and commands.

    The async core (identity, service, dispatcher, view) lives on `runner`'s loop;
    blocking code must go through runner.run()/runner.call().
    """

    settings: Any

    users: UserStore
    task_store: TaskStore
    identity: AuthGateway
    service: TaskService
    dispatcher: MutationDispatcher
    view: ReconciledView

    runner: BackgroundLoop | None = None

    def require_runner(self) -> BackgroundLoop:
        if self.runner is None:
            raise RuntimeError("Event loop is not running (AppState.runner is not set).")
        return self.runner
