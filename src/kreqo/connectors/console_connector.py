# src/kreqo/connectors/console_connector.py

from __future__ import annotations

import logging
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..cli.commands import render_snapshot
from ..core.state import AppState
from ..tasks.view_model import ViewSnapshot

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class _ViewPrinter:
    """
    Prints view changes as they arrive from the loop thread:
    - every new error message,
    - the refreshed list after each authoritative refetch.
    """

    def __init__(self) -> None:
        self._errors_seen = 0
        self._version_seen = -1

    def __call__(self, snap: ViewSnapshot) -> None:
        if len(snap.errors) < self._errors_seen:
            # errors were dismissed
            self._errors_seen = 0
        for err in snap.errors[self._errors_seen :]:
            _print_ts(f"[ERROR] {err}")
        self._errors_seen = len(snap.errors)

        if snap.version != self._version_seen and snap.loaded:
            first = self._version_seen == -1
            self._version_seen = snap.version
            if not first:
                _print_ts("[TASKS]\n" + render_snapshot(snap))


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    _print_ts("[CONSOLE] Use /help for commands, /add <title> to add a task. Use /exit to quit.\n")

    runner = state.require_runner()
    unsubscribe = runner.call(state.view.subscribe, _ViewPrinter())

    def emit(text: str) -> None:
        _print_ts(text)

    try:
        while True:
            try:
                user_input = input(">>> ").strip()
            except EOFError:
                logger.info("Console EOF received, exiting.")
                break
            except KeyboardInterrupt:
                logger.info("Console KeyboardInterrupt, exiting.")
                print()
                break

            if not user_input:
                continue

            if user_input.lower() in ("/exit", "/quit"):
                logger.info("Console exit command received.")
                break

            # Plain text is a shortcut for /add.
            line = user_input if user_input.startswith("/") else f"/add {user_input}"

            try:
                response = command_registry.handle(state, line, emit=emit)
            except Exception:
                logger.exception("Command handler crashed.")
                response = "Internal error while handling a command."

            if response is not None:
                _print_ts(response)
    finally:
        runner.call(unsubscribe)

    logger.info("Console connector finished.")
