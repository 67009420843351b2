# src/phitodo/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Notes:
    - COMPLETED is terminal for the reconciler: only a user action moves a task out of it.
    - CANCELLED is user-only; views treat it like any other non-completed status.
    """

    INBOX = "inbox"
    ACTIVE = "active"
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.INBOX
        try:
            return cls(raw)
        except ValueError:
            return cls.INBOX


class TaskPriority(StrEnum):
    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskPriority:
        if not raw:
            return cls.NONE
        try:
            return cls(raw)
        except ValueError:
            return cls.NONE

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @property
    def symbol(self) -> str:
        return "!" * self.rank or " "


_PRIORITY_RANK = {
    TaskPriority.NONE: 0,
    TaskPriority.LOW: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.HIGH: 3,
}


class ExternalSource(StrEnum):
    GITHUB_ISSUE = "github_issue"
    GITHUB_PR = "github_pr"
    GITHUB_REVIEW = "github_review"
    TOGGL_ENTRY = "toggl_entry"

    @property
    def is_github(self) -> bool:
        return self is not ExternalSource.TOGGL_ENTRY


class TaskKind(StrEnum):
    TASK = "task"
    BUG = "bug"
    FEATURE = "feature"
    CHORE = "chore"
    GITHUB_ISSUE = "gh:issue"
    GITHUB_PR = "gh:pr"
    GITHUB_REVIEW = "gh:review"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskKind:
        if not raw:
            return cls.TASK
        try:
            return cls(raw)
        except ValueError:
            return cls.TASK

    @classmethod
    def for_source(cls, source: ExternalSource) -> TaskKind:
        try:
            return _KIND_BY_SOURCE[source]
        except KeyError:
            raise ValueError(f"source {source} does not produce tasks") from None

    @property
    def symbol(self) -> str:
        return _KIND_SYMBOL[self]


_KIND_BY_SOURCE = {
    ExternalSource.GITHUB_ISSUE: TaskKind.GITHUB_ISSUE,
    ExternalSource.GITHUB_PR: TaskKind.GITHUB_PR,
    ExternalSource.GITHUB_REVIEW: TaskKind.GITHUB_REVIEW,
}

_KIND_SYMBOL = {
    TaskKind.TASK: "[T]",
    TaskKind.BUG: "[B]",
    TaskKind.FEATURE: "[F]",
    TaskKind.CHORE: "[C]",
    TaskKind.GITHUB_ISSUE: "[ISS]",
    TaskKind.GITHUB_PR: "[PR]",
    TaskKind.GITHUB_REVIEW: "[REV]",
}


@dataclass(frozen=True, slots=True)
class ExternalRef:
    """Link from a sync-originated task back to the item it mirrors."""

    source: ExternalSource
    key: str
    url: str
    repo: str | None = None


@dataclass(slots=True)
class Task:
    id: int
    title: str
    status: TaskStatus
    priority: TaskPriority
    kind: TaskKind
    created_at: float
    updated_at: float

    notes: str | None = None
    due_date: date | None = None
    start_date: date | None = None
    completed_at: float | None = None
    project_id: int | None = None
    tags: set[str] = field(default_factory=set)
    order_index: int = 0

    external_ref: ExternalRef | None = None
    external_state_hash: str | None = None

    @property
    def is_sync_originated(self) -> bool:
        return self.external_ref is not None

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    def is_overdue(self, today: date) -> bool:
        return self.due_date is not None and self.due_date < today and not self.is_completed

    def is_due_today(self, today: date) -> bool:
        return self.due_date is not None and self.due_date == today


@dataclass(slots=True)
class Project:
    id: int
    name: str
    created_at: float
    updated_at: float
    source_repo: str | None = None
    order_index: int = 0
