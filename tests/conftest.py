# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from phitodo.core.state import AppState
from phitodo.sync.reconciler import Reconciler
from phitodo.tasks.project_resolver import ProjectResolver
from phitodo.tasks.task_store import TaskStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap helpers.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="phitodo-test",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        # No tokens: nothing reaches the network
        github_token=None,
        github_api_base="https://api.github.test",
        github_repos=[],
        untracked_repo_policy="keep",
        toggl_token=None,
        toggl_api_base="https://api.toggl.test/api/v9",
        toggl_days=7,
        toggl_hidden_projects=[],
        http_timeout_seconds=5.0,
    )


@pytest.fixture()
def store(settings: SimpleNamespace) -> TaskStore:
    return TaskStore(settings.tasks_db_path)


@pytest.fixture()
def resolver(store: TaskStore) -> ProjectResolver:
    return ProjectResolver(store)


@pytest.fixture()
def reconciler(store: TaskStore, resolver: ProjectResolver) -> Reconciler:
    return Reconciler(store, resolver)


@pytest.fixture()
def state(
    settings: SimpleNamespace,
    store: TaskStore,
    resolver: ProjectResolver,
    reconciler: Reconciler,
) -> AppState:
    """
    AppState wired with a real SQLite store and no HTTP clients.

    The store's correctness is part of what we want to test, so it is not faked.
    """
    return AppState(
        settings=settings,
        task_store=store,
        resolver=resolver,
        reconciler=reconciler,
    )
