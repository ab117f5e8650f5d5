# src/kreqo/auth/gateway.py

"""
Identity gateway.

Owns one session binding (the equivalent of a browser's session cookie) and
answers "who is acting right now?" for the task service.

Contract used by the core:
- current_identity() -> Identity | None, raises AuthUnavailable if the user store is down
- resolve_identity(ref) -> Identity | None, never raises

Password hashing and session issuance live here and nowhere else.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import secrets
from pathlib import Path

import bcrypt

from ..core.errors import AuthUnavailable, StoreError, ValidationError
from ..core.ports import UserRepo
from .auth_models import ANONYMOUS_OWNER_REF, Identity

logger = logging.getLogger(__name__)

USERNAME_MAX_LEN = 32


class AuthGateway:
    def __init__(
        self,
        users: UserRepo,
        *,
        bcrypt_rounds: int = 12,
        session_file: str | Path | None = None,
    ) -> None:
        self._users = users
        self._rounds = int(bcrypt_rounds)
        self._session_file = Path(session_file) if session_file else None
        self._token: str | None = None

    # ---- password helpers (blocking, run in worker threads) ----

    def _hash_password(self, password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=self._rounds)).decode("utf-8")

    @staticmethod
    def _check_password(password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
        except ValueError:
            # Malformed hash in the db.
            logger.warning("Stored password hash is not a valid bcrypt hash.")
            return False

    # ---- remembered session token ----

    def _remember(self, token: str) -> None:
        if self._session_file is None:
            return
        path = self._session_file
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(token, "utf-8")
            os.replace(tmp, path)
            with contextlib.suppress(Exception):
                os.chmod(path, 0o600)
        except OSError:
            logger.exception("Failed to remember session in %s", path)

    def _forget(self) -> None:
        if self._session_file is None:
            return
        with contextlib.suppress(FileNotFoundError):
            self._session_file.unlink()

    # ---- public API ----

    @property
    def logged_in(self) -> bool:
        return self._token is not None

    async def signup(
        self,
        username: str,
        password: str,
        password_confirmation: str,
        remember: bool = False,
    ) -> Identity:
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username is required.")
        if len(username) > USERNAME_MAX_LEN:
            raise ValidationError(f"Username must be at most {USERNAME_MAX_LEN} characters.")
        if not password:
            raise ValidationError("Password is required.")
        if password != password_confirmation:
            raise ValidationError("Passwords did not match.")

        password_hash = await asyncio.to_thread(self._hash_password, password)
        await asyncio.to_thread(self._users.create_user, username, password_hash)
        logger.info("Signed up username=%s", username)

        return await self.login(username, password, remember)

    async def login(self, username: str, password: str, remember: bool = False) -> Identity:
        username = (username or "").strip()
        user = await asyncio.to_thread(self._users.get_user_by_username, username)
        if user is None:
            raise ValidationError("User does not exist.")

        ok = await asyncio.to_thread(self._check_password, password or "", user.password_hash)
        if not ok:
            raise ValidationError("Password does not match.")

        # Replace any previous binding.
        if self._token is not None:
            await self.logout()

        token = secrets.token_urlsafe(32)
        await asyncio.to_thread(self._users.create_session, token, user.id)
        self._token = token
        if remember:
            await asyncio.to_thread(self._remember, token)

        logger.info("Logged in user_id=%s username=%s remember=%s", user.id, user.username, remember)
        return user.to_identity()

    async def logout(self) -> None:
        token, self._token = self._token, None
        await asyncio.to_thread(self._forget)
        if token is None:
            return
        try:
            await asyncio.to_thread(self._users.delete_session, token)
        except StoreError:
            # Binding is already dropped locally; the stale row is harmless.
            logger.warning("Could not delete session row on logout.")
        logger.info("Logged out.")

    async def restore(self) -> Identity | None:
        """Bind a remembered session token from a previous run, if still valid."""
        if self._session_file is None or not self._session_file.exists():
            return None
        try:
            token = (await asyncio.to_thread(self._session_file.read_text, "utf-8")).strip()
        except OSError:
            logger.exception("Failed to read remembered session %s", self._session_file)
            return None

        self._token = token or None
        try:
            ident = await self.current_identity()
        except AuthUnavailable:
            logger.warning("Could not restore remembered session (user store unavailable).")
            return None

        if ident is None:
            self._token = None
            await asyncio.to_thread(self._forget)
            return None

        logger.info("Restored session for username=%s", ident.username)
        return ident

    async def current_identity(self) -> Identity | None:
        token = self._token
        if token is None:
            return None
        try:
            user_id = await asyncio.to_thread(self._users.get_session_user_id, token)
            if user_id is None:
                return None
            user = await asyncio.to_thread(self._users.get_user, user_id)
        except StoreError as e:
            raise AuthUnavailable(str(e)) from e
        return user.to_identity() if user else None

    async def resolve_identity(self, ref: int) -> Identity | None:
        if ref == ANONYMOUS_OWNER_REF:
            return None
        try:
            user = await asyncio.to_thread(self._users.get_user, ref)
        except StoreError:
            logger.warning("resolve_identity failed ref=%s; treating as unknown", ref)
            return None
        return user.to_identity() if user else None
