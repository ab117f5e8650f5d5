# src/kreqo/core/errors.py

"""
Error taxonomy shared by the stores, the task service and the dispatcher.

Every failure in the core is per-operation and recoverable by re-submitting;
nothing here is meant to terminate the process.
"""

from __future__ import annotations


class KreqoError(Exception):
    """Base class for all expected (user-recoverable) failures."""


class AuthUnavailable(KreqoError):
    """The identity backend (session/user store) cannot be reached."""


class NotFound(KreqoError):
    """The target of a mutation does not exist."""


class StoreError(KreqoError):
    """The underlying persistence layer failed."""


class ValidationError(KreqoError):
    """The request itself is invalid (empty title, bad credentials, ...)."""


class PermissionDenied(KreqoError):
    """The acting identity may not mutate this task (strict ownership policy only)."""


def friendly_error_message(err: BaseException) -> str:
    msg = str(err).strip()
    if isinstance(err, AuthUnavailable):
        return f"Login service unavailable: {msg}" if msg else "Login service unavailable."
    if isinstance(err, NotFound):
        return msg or "Task not found."
    if isinstance(err, StoreError):
        return f"Server Error: {msg}" if msg else "Server Error."
    if isinstance(err, PermissionDenied):
        return msg or "You can only change your own tasks."
    if isinstance(err, KreqoError):
        return msg or "Invalid request."
    return f"Unexpected error: {type(err).__name__}" + (f": {msg}" if msg else "")
