# src/phitodo/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Tokens live on Settings and are handed to the fetch clients per call.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

ENV_PREFIX = "PHITODO"

UNTRACKED_POLICIES = ("keep", "complete")


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv  # type: ignore
    except Exception:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    parts = [p.strip() for p in raw.replace(",", " ").split() if p.strip()]
    return parts


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str
    console_enabled: bool

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path

    # ---- GitHub ----
    github_token: Optional[str]
    github_api_base: str
    github_repos: List[str]
    untracked_repo_policy: str

    # ---- Toggl ----
    toggl_token: Optional[str]
    toggl_api_base: str
    toggl_days: int
    toggl_hidden_projects: List[str]

    # ---- HTTP ----
    http_timeout_seconds: float

    @property
    def has_github(self) -> bool:
        return bool(self.github_token and self.github_token.strip())

    @property
    def has_toggl(self) -> bool:
        return bool(self.toggl_token and self.toggl_token.strip())

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "phitodo") or "phitodo"
        log_level = _env(_k("LOG_LEVEL"), "INFO")
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/phitodo"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "phitodo.sqlite3")

        # GITHUB_TOKEN is accepted as a fallback so the usual CLI setup just works.
        github_token = _first_env(_k("GITHUB_TOKEN"), "GITHUB_TOKEN", default=None)
        github_api_base = _env(_k("GITHUB_API_BASE"), "https://api.github.com").rstrip("/")
        github_repos = _env_list(_k("GITHUB_REPOS"), [])

        policy = _env(_k("UNTRACKED_REPO_POLICY"), "keep").strip().lower()
        if policy not in UNTRACKED_POLICIES:
            policy = "keep"

        toggl_token = _first_env(_k("TOGGL_TOKEN"), "TOGGL_API_TOKEN", default=None)
        toggl_api_base = _env(_k("TOGGL_API_BASE"), "https://api.track.toggl.com/api/v9").rstrip("/")
        toggl_days = max(1, _env_int(_k("TOGGL_DAYS"), 7))
        toggl_hidden_projects = _env_list(_k("TOGGL_HIDDEN_PROJECTS"), [])

        http_timeout_seconds = max(1.0, _env_float(_k("HTTP_TIMEOUT_SECONDS"), 20.0))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            github_token=github_token,
            github_api_base=github_api_base,
            github_repos=github_repos,
            untracked_repo_policy=policy,
            toggl_token=toggl_token,
            toggl_api_base=toggl_api_base,
            toggl_days=toggl_days,
            toggl_hidden_projects=toggl_hidden_projects,
            http_timeout_seconds=http_timeout_seconds,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
