# src/phitodo/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from pathlib import Path

LOG_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Per-request chatter from the transport layer; failures surface as WARNING.
QUIET_MODULES: tuple[str, ...] = (
    "phitodo.sync.http",
    "phitodo.sync.github_client",
    "phitodo.sync.toggl_client",
)

# Set on these loggers directly so the file log is not flooded either.
_NOISY_LIBRARIES = ("httpx", "httpcore", "asyncio")


class _ConsoleNoiseFilter(logging.Filter):
    """
    Console output shares the terminal with the REPL prompt, so it only shows:
    phitodo records (the transport modules from WARNING up), and anything
    else from ERROR up.
    """

    def __init__(self, quiet: Iterable[str] = QUIET_MODULES) -> None:
        super().__init__()
        self._quiet = tuple(quiet)

    def filter(self, record: logging.LogRecord) -> bool:
        if not record.name.startswith("phitodo."):
            return record.levelno >= logging.ERROR
        if record.name.startswith(self._quiet):
            return record.levelno >= logging.WARNING
        return True


def parse_level(name: str | None, default: int = logging.INFO) -> int:
    """'debug' -> logging.DEBUG; unknown names fall back to `default`."""
    level = logging.getLevelName(str(name or "").strip().upper())
    return level if isinstance(level, int) else default


def setup_logging(
    *,
    log_dir: str | Path = ".local/phitodo",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    file_name: str = "phitodo.log",
) -> Path:
    """
    Install a filtered stderr handler and a full file log under `log_dir`.

    Replaces any handlers already on the root logger, so calling it twice is
    harmless. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / file_name

    root = logging.getLogger()
    root.setLevel(min(console_level, file_level))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(formatter)
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
    file_handler.setLevel(file_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    for name in _NOISY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
