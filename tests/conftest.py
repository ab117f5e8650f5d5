# tests/conftest.py

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from types import SimpleNamespace

import pytest

from kreqo.auth.gateway import AuthGateway
from kreqo.auth.user_store import UserStore
from kreqo.tasks.dispatcher import MutationDispatcher
from kreqo.tasks.task_service import TaskService
from kreqo.tasks.task_store import TaskStore
from kreqo.tasks.view_model import ReconciledView


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="kreqo-test",
        log_level="DEBUG",
        console_enabled=False,
        data_dir=tmp_path,
        db_path=tmp_path / "kreqo.sqlite3",
        session_path=tmp_path / "session",
        create_delay_seconds=0.0,
        ownership_policy="open",
        # bcrypt minimum, keeps tests fast
        bcrypt_rounds=4,
    )


@pytest.fixture()
def users(settings: SimpleNamespace) -> UserStore:
    return UserStore(settings.db_path)


@pytest.fixture()
def task_store(settings: SimpleNamespace) -> TaskStore:
    """Real SQLite store: its ordering/id guarantees are part of what we test."""
    return TaskStore(settings.db_path)


@pytest.fixture()
def gateway(users: UserStore, settings: SimpleNamespace) -> AuthGateway:
    return AuthGateway(users, bcrypt_rounds=settings.bcrypt_rounds, session_file=settings.session_path)


@pytest.fixture()
def service(gateway: AuthGateway, task_store: TaskStore) -> TaskService:
    return TaskService(gateway, task_store)


@pytest.fixture()
def dispatcher(service: TaskService) -> MutationDispatcher:
    return MutationDispatcher(service)


@pytest.fixture()
def view(service: TaskService, dispatcher: MutationDispatcher) -> Iterator[ReconciledView]:
    v = ReconciledView(service, dispatcher)
    v.start()
    yield v
    v.close()
