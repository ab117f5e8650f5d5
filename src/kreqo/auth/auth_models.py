# src/kreqo/auth/auth_models.py

from __future__ import annotations

from dataclasses import dataclass

# Owner reference stored on a task created without an active session.
ANONYMOUS_OWNER_REF = -1


@dataclass(frozen=True, slots=True)
class Identity:
    id: int
    username: str

    @property
    def anonymous(self) -> bool:
        return self.id == ANONYMOUS_OWNER_REF


# Display identity used when an owner reference does not resolve.
GUEST = Identity(id=ANONYMOUS_OWNER_REF, username="Guest")


@dataclass(frozen=True, slots=True)
class UserRecord:
    id: int
    username: str
    password_hash: str
    created_at: str

    def to_identity(self) -> Identity:
        return Identity(id=self.id, username=self.username)
