# src/phitodo/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (store/resolver/clients/reconciler),
- builds the per-cycle fetchers from the configured tokens.
"""

from __future__ import annotations

import logging
from datetime import date

from ..config import get_settings
from ..core.ports import Fetcher
from ..core.state import AppState
from ..sync.external import FetchCategory
from ..sync.github_client import GitHubClient
from ..sync.reconciler import Reconciler
from ..sync.toggl_client import TogglClient
from ..tasks.project_resolver import ProjectResolver
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(settings.tasks_db_path)
    resolver = ProjectResolver(store)
    reconciler = Reconciler(
        store,
        resolver,
        tracked_repos=settings.github_repos,
        untracked_policy=settings.untracked_repo_policy,
        hidden_projects=settings.toggl_hidden_projects,
    )

    timeout = float(getattr(settings, "http_timeout_seconds", 20.0))
    return AppState(
        settings=settings,
        task_store=store,
        resolver=resolver,
        reconciler=reconciler,
        github_client=GitHubClient(api_base=settings.github_api_base, timeout_seconds=timeout),
        toggl_client=TogglClient(api_base=settings.toggl_api_base, timeout_seconds=timeout),
    )


def build_fetchers(state: AppState, *, today: date | None = None) -> dict[FetchCategory, Fetcher]:
    """
    Fetchers for one refresh cycle.

    Tokens are read from settings now and bound into each call; a source
    without a token is simply not fetched this cycle.
    """
    settings = state.settings
    fetchers: dict[FetchCategory, Fetcher] = {}

    github_token = (getattr(settings, "github_token", None) or "").strip()
    if github_token and state.github_client is not None:
        fetchers.update(state.github_client.fetchers(github_token))
    else:
        logger.debug("GitHub token not configured; skipping GitHub categories")

    toggl_token = (getattr(settings, "toggl_token", None) or "").strip()
    if toggl_token and state.toggl_client is not None:
        fetchers.update(
            state.toggl_client.fetchers(
                toggl_token,
                days=int(getattr(settings, "toggl_days", 7)),
                today=today or date.today(),
            )
        )
    else:
        logger.debug("Toggl token not configured; skipping time entries")

    return fetchers
