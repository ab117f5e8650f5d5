# src/kreqo/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, starts the event loop in a background thread,
restores a remembered session, loads the task list, then runs the console REPL.
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..connectors.loop_runner import start_background_loop
from ..core.errors import KreqoError
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT_SECONDS = 30.0


def _shutdown(state: AppState) -> None:
    """Best-effort shutdown: in-flight mutations run to completion, they are never cancelled."""
    runner = state.runner
    if runner is None:
        return
    try:
        runner.run(state.view.settle(), timeout=SHUTDOWN_TIMEOUT_SECONDS)
    except Exception:
        logger.exception("Failed to settle in-flight mutations.")

    try:
        runner.call(state.view.close)
    except Exception:
        logger.debug("View close failed.", exc_info=True)

    try:
        runner.run(state.dispatcher.close(), timeout=SHUTDOWN_TIMEOUT_SECONDS)
    except Exception:
        logger.exception("Failed to close the mutation dispatcher.")

    runner.stop()
    runner.join(timeout=5.0)


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    state = create_initial_state(settings=settings)
    state.runner = start_background_loop()

    try:
        ident = state.runner.run(state.identity.restore())
        if ident is not None:
            print(f"Welcome back, {ident.username}.")
    except KreqoError:
        logger.exception("Failed to restore session.")

    state.runner.call(state.view.start)
    try:
        state.runner.run(state.view.refresh())
    except Exception:
        logger.exception("Initial task load failed.")

    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        signal.signal(signal.SIGTERM, _handle_signal)
    except (ValueError, OSError):
        # Some platforms may not support SIGTERM.
        pass

    try:
        if settings.console_enabled:
            run_console_loop(state)
        else:
            logger.info("Console disabled. Nothing to do; press Ctrl+C to stop.")
            try:
                stop_main.wait()
            except KeyboardInterrupt:
                pass
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
