# src/kreqo/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.errors import KreqoError, friendly_error_message
from ..core.state import AppState
from ..tasks.view_model import PENDING_STATUS, ViewEntry, ViewSnapshot

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)

REMEMBER_FLAGS = {"--remember", "-r"}


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /add, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                return cast(CommandHandler3, handler)(state, args, emit)
            return cast(CommandHandler2, handler)(state, args)
        except KreqoError as e:
            logger.info("Command /%s failed: %s", name, e)
            return friendly_error_message(e)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- rendering ----


def render_entry(entry: ViewEntry) -> str:
    box = "[x]" if entry.completed else "[ ]"
    if entry.pending:
        return f"{box}  ...  {entry.title}  {PENDING_STATUS}"
    return f"{box} #{entry.task_id} {entry.title} - created at {entry.created_at} by {entry.owner_name}"


def render_snapshot(snap: ViewSnapshot) -> str:
    lines: list[str] = []
    if not snap.loaded and not snap.entries:
        lines.append("Loading...")
    elif not snap.entries:
        lines.append("No tasks were found.")
    else:
        lines.extend(render_entry(e) for e in snap.entries)
    for err in snap.errors:
        lines.append(f"! {err}")
    return "\n".join(lines)


# ---- helpers ----


def _split_remember(args: list[str]) -> tuple[list[str], bool]:
    rest = [a for a in args if a.lower() not in REMEMBER_FLAGS]
    return rest, len(rest) != len(args)


def _parse_task_id(args: list[str]) -> int | None:
    if len(args) != 1:
        return None
    raw = args[0].lstrip("#")
    try:
        return int(raw)
    except ValueError:
        return None


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    runner = state.require_runner()
    ident = runner.run(state.identity.current_identity())
    snap = runner.call(state.view.snapshot)
    who = ident.username if ident else "anonymous"
    return (
        "Status:\n"
        f"  User: {who}\n"
        f"  Ownership policy: {state.service.policy.value}\n"
        f"  Tasks shown: {len(snap.confirmed)} (+{snap.pending_count} pending)\n"
        f"  Database: {getattr(state.settings, 'db_path', '?')}"
    )


def cmd_signup(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /signup <username> <password> <password again> [--remember]
    """
    rest, remember = _split_remember(args)
    if len(rest) != 3:
        return "Usage: /signup <username> <password> <password again> [--remember]"

    ident = state.require_runner().run(state.identity.signup(rest[0], rest[1], rest[2], remember))
    return f"Account created. Logged in as {ident.username}."


def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /login <username> <password> [--remember]
    """
    rest, remember = _split_remember(args)
    if len(rest) != 2:
        return "Usage: /login <username> <password> [--remember]"

    ident = state.require_runner().run(state.identity.login(rest[0], rest[1], remember))
    return f"Logged in as {ident.username}."


def cmd_logout(state: AppState, args: list[str]) -> str:
    state.require_runner().run(state.identity.logout())
    return "Logged out."


def cmd_whoami(state: AppState, args: list[str]) -> str:
    ident = state.require_runner().run(state.identity.current_identity())
    if ident is None:
        return "Not logged in. Use /signup or /login."
    return f"{ident.username} (id={ident.id})"


def cmd_list(state: AppState, args: list[str]) -> str:
    return render_snapshot(state.require_runner().call(state.view.snapshot))


def cmd_refresh(state: AppState, args: list[str]) -> str:
    snap = state.require_runner().run(state.view.refresh())
    return render_snapshot(snap)


def cmd_add(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    title = " ".join(args).strip()
    if not title:
        return "Usage: /add <title>"
    state.require_runner().call(state.view.submit_create, title)
    return f'Adding "{title}"...'


def _toggle(state: AppState, args: list[str], completed: bool, name: str) -> str:
    task_id = _parse_task_id(args)
    if task_id is None:
        return f"Usage: /{name} <id>"
    state.require_runner().call(state.view.submit_toggle, task_id, completed)
    return f"Task #{task_id} marked {'done' if completed else 'not done'}."


def cmd_done(state: AppState, args: list[str]) -> str:
    return _toggle(state, args, True, "done")


def cmd_undo(state: AppState, args: list[str]) -> str:
    return _toggle(state, args, False, "undo")


def cmd_rm(state: AppState, args: list[str]) -> str:
    task_id = _parse_task_id(args)
    if task_id is None:
        return "Usage: /rm <id>"
    state.require_runner().call(state.view.submit_delete, task_id)
    return f"Deleting task #{task_id}..."


def cmd_errors(state: AppState, args: list[str]) -> str:
    errors = state.require_runner().call(state.view.dismiss_errors)
    if not errors:
        return "No errors."
    return "Errors (cleared):\n" + "\n".join(f"  {e}" for e in errors)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show current user, policy and task counts.")
registry.register("signup", cmd_signup, help_text="Create an account: /signup <user> <pass> <pass> [--remember].")
registry.register("login", cmd_login, help_text="Log in: /login <user> <pass> [--remember].")
registry.register("logout", cmd_logout, help_text="Log out.")
registry.register("whoami", cmd_whoami, help_text="Show the logged-in user.")
registry.register("list", cmd_list, help_text="Show tasks (pending ones are marked Loading...).", aliases=["ls"])
registry.register("refresh", cmd_refresh, help_text="Reload tasks from the store.")
registry.register("add", cmd_add, help_text="Add a task: /add <title>.")
registry.register("done", cmd_done, help_text="Mark a task completed: /done <id>.")
registry.register("undo", cmd_undo, help_text="Mark a task not completed: /undo <id>.")
registry.register("rm", cmd_rm, help_text="Delete a task: /rm <id>.", aliases=["del"])
registry.register("errors", cmd_errors, help_text="Show and clear error messages.")
