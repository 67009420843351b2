# src/phitodo/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..sync.github_client import GitHubClient
    from ..sync.reconciler import Reconciler, SyncSummary
    from ..sync.toggl_client import TogglClient
    from ..tasks.project_resolver import ProjectResolver
    from ..tasks.task_store import TaskStore
    from ..views.time_report import TimeReport


@dataclass
class AppState:
    # Settings (or a SimpleNamespace in tests) for easy access in other modules.
    settings: Any

    task_store: TaskStore
    resolver: ProjectResolver
    reconciler: Reconciler

    github_client: GitHubClient | None = None
    toggl_client: TogglClient | None = None

    last_summary: SyncSummary | None = None
    time_report: TimeReport | None = None
