# src/phitodo/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps storage and the HTTP clients swappable and makes testing easier.
"""

from contextlib import AbstractContextManager
from datetime import date
from typing import Any, Awaitable, Callable, Protocol, Sequence

# A fetch function for one category: resolves to raw records or raises FetchError.
# Cancelling the awaitable is how the caller aborts the fetch phase.
Fetcher = Callable[[], Awaitable[Sequence[Any]]]


class TaskRepo(Protocol):
    def exclusive(self) -> AbstractContextManager[None]: ...

    # Tasks
    def create_task(
            self,
            *,
            title: str,
            notes: str | None = None,
            status: Any = ...,
            priority: Any = ...,
            kind: Any = ...,
            due_date: date | None = None,
            start_date: date | None = None,
            project_id: int | None = None,
            tags: set[str] | None = None,
            external_ref: Any | None = None,
            external_state_hash: str | None = None,
    ) -> int: ...

    def get_task(self, task_id: int) -> Any | None: ...
    def update_task(self, task_id: int, **fields: Any) -> Any: ...
    def delete_task(self, task_id: int) -> None: ...
    def find_by_external_key(self, source: Any, key: str) -> Any | None: ...
    def query(self, predicate: Callable[[Any], bool] | None = None) -> list[Any]: ...
    def list_sync_tasks(self) -> list[Any]: ...

    # Projects
    def create_project(self, *, name: str, source_repo: str | None = None) -> Any: ...
    def get_project(self, project_id: int) -> Any | None: ...
    def find_project_by_source_repo(self, source_repo: str) -> Any | None: ...
    def list_projects(self) -> list[Any]: ...
    def delete_project(self, project_id: int) -> None: ...
