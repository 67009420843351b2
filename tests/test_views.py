# tests/test_views.py

from __future__ import annotations

from datetime import date, timedelta

from phitodo.tasks.task_models import Task, TaskKind, TaskPriority, TaskStatus
from phitodo.views import filters

TODAY = date(2026, 10, 18)
YESTERDAY = TODAY - timedelta(days=1)
TOMORROW = TODAY + timedelta(days=1)


def _t(
    task_id: int,
    *,
    status: TaskStatus = TaskStatus.INBOX,
    due: date | None = None,
    priority: TaskPriority = TaskPriority.NONE,
    kind: TaskKind = TaskKind.TASK,
    title: str | None = None,
    notes: str | None = None,
    completed_at: float | None = None,
    project_id: int | None = None,
    tags: set[str] | None = None,
) -> Task:
    return Task(
        id=task_id,
        title=title or f"task {task_id}",
        status=status,
        priority=priority,
        kind=kind,
        created_at=0.0,
        updated_at=0.0,
        notes=notes,
        due_date=due,
        completed_at=completed_at,
        project_id=project_id,
        tags=tags or set(),
        order_index=task_id,
    )


def _ids(tasks: list[Task]) -> list[int]:
    return [t.id for t in tasks]


def test_inbox_view() -> None:
    tasks = [_t(1), _t(2, status=TaskStatus.ACTIVE), _t(3)]
    assert _ids(filters.filter_inbox(tasks)) == [1, 3]


def test_today_includes_due_today_and_open_overdue() -> None:
    tasks = [
        _t(1, due=TODAY),
        _t(2, due=YESTERDAY),
        _t(3, due=YESTERDAY, status=TaskStatus.COMPLETED),
        _t(4, due=TOMORROW),
        _t(5),
        _t(6, due=TODAY, status=TaskStatus.COMPLETED),
    ]
    # Completed tasks due today still count as "due today".
    assert _ids(filters.filter_today(tasks, TODAY)) == [1, 2, 6]


def test_due_today_and_overdue_predicates() -> None:
    assert _t(1, due=TODAY).is_due_today(TODAY)
    assert _t(2, due=TODAY, status=TaskStatus.COMPLETED).is_due_today(TODAY)
    assert not _t(3, due=YESTERDAY).is_due_today(TODAY)
    assert not _t(4).is_due_today(TODAY)

    assert _t(3, due=YESTERDAY).is_overdue(TODAY)
    assert not _t(5, due=YESTERDAY, status=TaskStatus.COMPLETED).is_overdue(TODAY)
    assert not _t(1, due=TODAY).is_overdue(TODAY)


def test_upcoming_anytime_and_review() -> None:
    tasks = [
        _t(1, due=TOMORROW),
        _t(2, due=YESTERDAY),
        _t(3),
        _t(4, status=TaskStatus.COMPLETED),
        _t(5, due=YESTERDAY, status=TaskStatus.COMPLETED),
        _t(6, status=TaskStatus.CANCELLED),
    ]
    assert _ids(filters.filter_upcoming(tasks, TODAY)) == [1]
    assert _ids(filters.filter_anytime(tasks)) == [3, 6]
    assert _ids(filters.filter_review(tasks, TODAY)) == [2]


def test_review_is_subset_of_today() -> None:
    tasks = [_t(1, due=TODAY), _t(2, due=YESTERDAY), _t(3, due=YESTERDAY - timedelta(days=5))]
    review = set(_ids(filters.filter_review(tasks, TODAY)))
    today = set(_ids(filters.filter_today(tasks, TODAY)))
    assert review == {2, 3}
    assert review < today


def test_completed_sorted_most_recent_first() -> None:
    tasks = [
        _t(1, status=TaskStatus.COMPLETED, completed_at=100.0),
        _t(2),
        _t(3, status=TaskStatus.COMPLETED, completed_at=300.0),
        _t(4, status=TaskStatus.COMPLETED, completed_at=200.0),
    ]
    assert _ids(filters.filter_completed(tasks)) == [3, 4, 1]


def test_github_columns_are_disjoint() -> None:
    tasks = [
        _t(1, kind=TaskKind.GITHUB_REVIEW),
        _t(2, kind=TaskKind.GITHUB_PR),
        _t(3, kind=TaskKind.GITHUB_ISSUE),
        _t(4, kind=TaskKind.BUG),
        _t(5, kind=TaskKind.GITHUB_PR),
    ]
    cols = filters.github_columns(tasks)
    assert _ids(cols.reviews) == [1]
    assert _ids(cols.pull_requests) == [2, 5]
    assert _ids(cols.issues) == [3]


def test_project_tag_and_search() -> None:
    tasks = [
        _t(1, project_id=7, tags={"work"}, title="Deploy API"),
        _t(2, project_id=7, status=TaskStatus.COMPLETED, tags={"work"}),
        _t(3, project_id=8, notes="remember the api keys"),
    ]
    assert _ids(filters.filter_by_project(tasks, 7)) == [1]
    assert _ids(filters.filter_by_tag(tasks, "work")) == [1]
    assert _ids(filters.search_tasks(tasks, "API")) == [1, 3]
    assert filters.search_tasks(tasks, "   ") == []


def test_sorting_and_grouping() -> None:
    tasks = [
        _t(1),
        _t(2, due=TOMORROW, priority=TaskPriority.LOW),
        _t(3, due=TODAY, priority=TaskPriority.HIGH),
        _t(4, due=TOMORROW, priority=TaskPriority.HIGH),
    ]
    assert _ids(filters.sort_by_due_date(tasks)) == [3, 2, 4, 1]
    assert _ids(filters.sort_by_priority(tasks)) == [3, 4, 2, 1]

    groups = filters.group_by_date(tasks)
    assert [d for d, _ in groups] == [None, TODAY, TOMORROW]
    assert _ids(groups[2][1]) == [2, 4]


def test_view_counts() -> None:
    tasks = [
        _t(1),
        _t(2, due=TODAY, status=TaskStatus.ACTIVE),
        _t(3, due=YESTERDAY, kind=TaskKind.GITHUB_ISSUE),
        _t(4, status=TaskStatus.COMPLETED, completed_at=1.0),
    ]
    counts = filters.view_counts(tasks, TODAY)
    assert counts.inbox == 2
    assert counts.today == 2
    assert counts.upcoming == 0
    assert counts.anytime == 1
    assert counts.completed == 1
    assert counts.review == 1
    assert counts.github == 1
