# src/phitodo/tasks/task_api.py

"""
User-action helpers.

Everything a person does to a task goes through here; unlike the reconciler
these may touch any field, including status and priority. NotFoundError is
propagated so the front end can show "item no longer exists".
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from ..core.errors import NotFoundError
from ..core.state import AppState
from .task_models import Task, TaskKind, TaskPriority, TaskStatus

logger = logging.getLogger(__name__)

_PRIORITY_ALIASES = {
    "0": TaskPriority.NONE,
    "1": TaskPriority.LOW,
    "2": TaskPriority.MEDIUM,
    "3": TaskPriority.HIGH,
    "med": TaskPriority.MEDIUM,
}


def parse_priority(raw: str) -> TaskPriority:
    s = (raw or "").strip().lower()
    if s in _PRIORITY_ALIASES:
        return _PRIORITY_ALIASES[s]
    try:
        return TaskPriority(s)
    except ValueError:
        raise ValueError(f"unknown priority: {raw!r} (use none/low/medium/high)") from None


def add_task(
    state: AppState,
    title: str,
    *,
    notes: str | None = None,
    due_date: date | None = None,
    priority: TaskPriority = TaskPriority.NONE,
    kind: TaskKind = TaskKind.TASK,
    project_id: int | None = None,
    tags: set[str] | None = None,
) -> int:
    """Create a user-owned task (no external_ref). Starts in the inbox."""
    if kind in (TaskKind.GITHUB_ISSUE, TaskKind.GITHUB_PR, TaskKind.GITHUB_REVIEW):
        raise ValueError("GitHub kinds are reserved for synced tasks")
    task_id = state.task_store.create_task(
        title=title,
        notes=notes,
        status=TaskStatus.INBOX,
        priority=priority,
        kind=kind,
        due_date=due_date,
        project_id=project_id,
        tags=tags,
    )
    logger.info("User added task id=%s", task_id)
    return task_id


def edit_task(state: AppState, task_id: int, **fields: Any) -> Task:
    return state.task_store.update_task(task_id, **fields)


def set_status(state: AppState, task_id: int, status: TaskStatus) -> Task:
    task = state.task_store.update_task(task_id, status=status)
    logger.info("User set task id=%s status=%s", task_id, status.value)
    return task


def set_priority(state: AppState, task_id: int, priority: TaskPriority) -> Task:
    return state.task_store.update_task(task_id, priority=priority)


def toggle_completed(state: AppState, task_id: int) -> Task:
    """Completed -> inbox, anything else -> completed."""
    task = state.task_store.get_task(task_id)
    if task is None:
        raise NotFoundError("task", task_id)
    new_status = TaskStatus.INBOX if task.is_completed else TaskStatus.COMPLETED
    return set_status(state, task_id, new_status)


def delete_task(state: AppState, task_id: int) -> None:
    state.task_store.delete_task(task_id)
    logger.info("User deleted task id=%s", task_id)
