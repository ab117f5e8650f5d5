# tests/test_auth.py

from __future__ import annotations

from types import SimpleNamespace

import pytest

from kreqo.auth.auth_models import ANONYMOUS_OWNER_REF
from kreqo.auth.gateway import AuthGateway
from kreqo.auth.user_store import UserStore
from kreqo.core.errors import AuthUnavailable, StoreError, ValidationError


class BrokenUserStore(UserStore):
    """UserStore whose lookups fail as if the database were unreachable."""

    def get_session_user_id(self, token: str) -> int | None:
        raise StoreError("database is locked")

    def get_user(self, user_id: int):
        raise StoreError("database is locked")


@pytest.mark.asyncio
async def test_signup_logs_in(gateway: AuthGateway) -> None:
    assert await gateway.current_identity() is None

    ident = await gateway.signup("alice", "pw", "pw")
    assert ident.username == "alice"

    current = await gateway.current_identity()
    assert current == ident


@pytest.mark.asyncio
async def test_signup_validation(gateway: AuthGateway) -> None:
    with pytest.raises(ValidationError, match="Passwords did not match"):
        await gateway.signup("alice", "pw", "other")
    with pytest.raises(ValidationError):
        await gateway.signup("   ", "pw", "pw")
    with pytest.raises(ValidationError):
        await gateway.signup("x" * 33, "pw", "pw")

    await gateway.signup("alice", "pw", "pw")
    with pytest.raises(ValidationError, match="already taken"):
        await gateway.signup("alice", "pw2", "pw2")


@pytest.mark.asyncio
async def test_login_errors_and_logout(gateway: AuthGateway) -> None:
    await gateway.signup("bob", "secret", "secret")
    await gateway.logout()
    assert await gateway.current_identity() is None

    with pytest.raises(ValidationError, match="User does not exist"):
        await gateway.login("nobody", "secret")
    with pytest.raises(ValidationError, match="Password does not match"):
        await gateway.login("bob", "wrong")

    ident = await gateway.login("bob", "secret")
    assert (await gateway.current_identity()) == ident

    await gateway.logout()
    await gateway.logout()  # idempotent
    assert await gateway.current_identity() is None


@pytest.mark.asyncio
async def test_remembered_session_is_restored(users: UserStore, settings: SimpleNamespace) -> None:
    first = AuthGateway(users, bcrypt_rounds=4, session_file=settings.session_path)
    ident = await first.signup("carol", "pw", "pw", remember=True)
    assert settings.session_path.exists()

    second = AuthGateway(users, bcrypt_rounds=4, session_file=settings.session_path)
    assert await second.restore() == ident

    await second.logout()
    assert not settings.session_path.exists()

    third = AuthGateway(users, bcrypt_rounds=4, session_file=settings.session_path)
    assert await third.restore() is None


@pytest.mark.asyncio
async def test_not_remembered_by_default(gateway: AuthGateway, settings: SimpleNamespace) -> None:
    await gateway.signup("dave", "pw", "pw")
    assert not settings.session_path.exists()


@pytest.mark.asyncio
async def test_resolve_identity(gateway: AuthGateway) -> None:
    ident = await gateway.signup("erin", "pw", "pw")
    assert await gateway.resolve_identity(ident.id) == ident
    assert await gateway.resolve_identity(ANONYMOUS_OWNER_REF) is None
    assert await gateway.resolve_identity(12345) is None


@pytest.mark.asyncio
async def test_store_failure_maps_to_auth_unavailable(settings: SimpleNamespace) -> None:
    users = BrokenUserStore(settings.db_path)
    gw = AuthGateway(users, bcrypt_rounds=4)
    await gw.signup("frank", "pw", "pw")

    with pytest.raises(AuthUnavailable):
        await gw.current_identity()

    # resolve_identity never fails
    assert await gw.resolve_identity(1) is None
