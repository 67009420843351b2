# src/phitodo/views/filters.py

"""
Read-side projections over a task snapshot.

Pure functions: they take a sequence of Task (usually TaskStore.query()) and the
reference date, and return new lists. Nothing is cached.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date

from ..tasks.task_models import Task, TaskKind, TaskStatus


def filter_inbox(tasks: Iterable[Task]) -> list[Task]:
    return [t for t in tasks if t.status == TaskStatus.INBOX]


def filter_today(tasks: Iterable[Task], today: date) -> list[Task]:
    """Due today, or overdue and not completed."""
    return [t for t in tasks if t.is_due_today(today) or t.is_overdue(today)]


def filter_upcoming(tasks: Iterable[Task], today: date) -> list[Task]:
    return [t for t in tasks if t.due_date is not None and t.due_date > today]


def filter_anytime(tasks: Iterable[Task]) -> list[Task]:
    return [t for t in tasks if t.due_date is None and not t.is_completed]


def filter_completed(tasks: Iterable[Task]) -> list[Task]:
    """Completed tasks, most recently completed first."""
    done = [t for t in tasks if t.is_completed]
    done.sort(key=lambda t: t.completed_at or 0.0, reverse=True)
    return done


def filter_review(tasks: Iterable[Task], today: date) -> list[Task]:
    """Overdue only (Today minus the due-today part)."""
    return [t for t in tasks if t.is_overdue(today)]


def filter_by_kind(tasks: Iterable[Task], kind: TaskKind) -> list[Task]:
    return [t for t in tasks if t.kind == kind]


@dataclass(frozen=True, slots=True)
class GitHubColumns:
    reviews: list[Task]
    pull_requests: list[Task]
    issues: list[Task]


def github_columns(tasks: Sequence[Task]) -> GitHubColumns:
    return GitHubColumns(
        reviews=filter_by_kind(tasks, TaskKind.GITHUB_REVIEW),
        pull_requests=filter_by_kind(tasks, TaskKind.GITHUB_PR),
        issues=filter_by_kind(tasks, TaskKind.GITHUB_ISSUE),
    )


def filter_by_project(tasks: Iterable[Task], project_id: int) -> list[Task]:
    return [t for t in tasks if t.project_id == project_id and not t.is_completed]


def filter_by_tag(tasks: Iterable[Task], tag: str) -> list[Task]:
    return [t for t in tasks if tag in t.tags and not t.is_completed]


def search_tasks(tasks: Iterable[Task], query: str) -> list[Task]:
    """Case-insensitive substring match on title or notes."""
    q = query.strip().lower()
    if not q:
        return []
    return [t for t in tasks if q in t.title.lower() or (t.notes is not None and q in t.notes.lower())]


def sort_by_due_date(tasks: Iterable[Task]) -> list[Task]:
    """Ascending due date, undated last (in their manual order)."""
    return sorted(
        tasks,
        key=lambda t: (t.due_date is None, t.due_date or date.min, t.order_index),
    )


def sort_by_priority(tasks: Iterable[Task]) -> list[Task]:
    """Highest priority first; stable for equal priorities."""
    return sorted(tasks, key=lambda t: t.priority.rank, reverse=True)


def group_by_date(tasks: Iterable[Task]) -> list[tuple[date | None, list[Task]]]:
    """Groups ordered by date; the undated group comes first."""
    groups: dict[date | None, list[Task]] = defaultdict(list)
    for t in tasks:
        groups[t.due_date].append(t)
    return sorted(groups.items(), key=lambda kv: (kv[0] is not None, kv[0] or date.min))


@dataclass(frozen=True, slots=True)
class ViewCounts:
    inbox: int
    today: int
    upcoming: int
    anytime: int
    completed: int
    review: int
    github: int


def view_counts(tasks: Sequence[Task], today: date) -> ViewCounts:
    gh = github_columns(tasks)
    return ViewCounts(
        inbox=len(filter_inbox(tasks)),
        today=len(filter_today(tasks, today)),
        upcoming=len(filter_upcoming(tasks, today)),
        anytime=len(filter_anytime(tasks)),
        completed=len(filter_completed(tasks)),
        review=len(filter_review(tasks, today)),
        github=len(gh.reviews) + len(gh.pull_requests) + len(gh.issues),
    )
