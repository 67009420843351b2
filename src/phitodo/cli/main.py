# src/phitodo/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then runs the console REPL in the main
thread. With the console disabled a single refresh cycle is run and the
process exits.
"""

from __future__ import annotations

import logging
import signal

from ..cli.bootstrap import create_initial_state
from ..cli.commands import cmd_sync
from ..config import get_settings
from ..connectors.console_connector import run_console_loop
from ..logging_setup import parse_level, setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    # TaskStore uses short-lived sqlite connections per call; close() is a hook only.
    try:
        store = getattr(state, "task_store", None)
        if store is not None and hasattr(store, "close"):
            store.close()
    except Exception:
        logger.debug("Task store close failed.", exc_info=True)


def main() -> None:
    settings = get_settings()

    log_file = setup_logging(
        log_dir=getattr(settings, "data_dir", ".local/phitodo"),
        console_level=parse_level(getattr(settings, "log_level", None)),
    )
    logger.debug("Logging to %s", log_file)

    logger.info("Starting %s...", getattr(settings, "app_name", "phitodo"))

    # IMPORTANT: reuse same settings object
    state = create_initial_state(settings=settings)

    def _handle_sigterm(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        raise SystemExit(0)

    # SIGINT keeps its default handler: Ctrl+C cancels a running fetch or leaves the console.
    try:
        signal.signal(signal.SIGTERM, _handle_sigterm)
    except (ValueError, OSError):
        # Not in the main thread, or the platform has no SIGTERM.
        logger.debug("SIGTERM handler not installed.", exc_info=True)

    try:
        if settings.console_enabled:
            run_console_loop(state)
        else:
            logger.info("Console disabled. Running one sync cycle.")
            print(cmd_sync(state, []))
    finally:
        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
