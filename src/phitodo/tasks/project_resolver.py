# src/phitodo/tasks/project_resolver.py

from __future__ import annotations

import logging

from ..core.errors import DuplicateProjectError
from ..core.ports import TaskRepo
from .task_models import Project

logger = logging.getLogger(__name__)


class ProjectResolver:
    """
    Maps a source repository ("owner/repo") to its auto-created Project.

    ensure() is idempotent and safe to call from several threads: lookup and
    insert run under the store's writer lock, and a unique index on
    projects.source_repo backs it up.
    """

    def __init__(self, store: TaskRepo) -> None:
        self._store = store
        self._cache: dict[str, Project] = {}

    def ensure(self, repo_identifier: str) -> Project:
        repo = (repo_identifier or "").strip()
        if not repo:
            raise ValueError("repo_identifier is required")

        cached = self._cache.get(repo)
        if cached is not None:
            # A user may have deleted the project since; fall through to re-create it.
            if self._store.get_project(cached.id) is not None:
                return cached
            del self._cache[repo]

        with self._store.exclusive():
            project = self._store.find_project_by_source_repo(repo)
            if project is None:
                try:
                    project = self._store.create_project(name=repo, source_repo=repo)
                    logger.info("Created project for repo=%s id=%s", repo, project.id)
                except DuplicateProjectError:
                    # Another process won the race; its row is the canonical one.
                    project = self._store.find_project_by_source_repo(repo)
                    if project is None:
                        raise

        self._cache[repo] = project
        return project
