# src/phitodo/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}")


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    app_name = str(getattr(getattr(state, "settings", None), "app_name", "phitodo"))
    _print_ts(f"[{app_name}] Use /help for commands, /sync to refresh, /exit to quit.\n")

    def emit(text: str) -> None:
        # Immediate feedback for long operations (sync)
        print(f"[{_ts_local()}] {text}", flush=True)

    while True:
        try:
            user_input = input(f"{app_name}> ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] {app_name}> {user_input}")
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

        if not user_input.startswith("/"):
            _print_ts("Commands start with '/'. Try /help, or /add <title> to capture a task.")
            continue

        try:
            response = command_registry.handle(state, user_input, emit=emit)
        except Exception:
            logger.exception("Command handler crashed.")
            response = "Internal error while handling a command."

        if response is not None:
            print(f"[{_ts_local()}] {response}\n")

    logger.info("Console connector finished.")
