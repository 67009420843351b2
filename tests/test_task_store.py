# tests/test_task_store.py

from __future__ import annotations

import sqlite3
import threading
from datetime import date
from pathlib import Path

import pytest

from phitodo.core.errors import DuplicateExternalKeyError, DuplicateProjectError, NotFoundError
from phitodo.tasks.task_models import (
    ExternalRef,
    ExternalSource,
    TaskKind,
    TaskPriority,
    TaskStatus,
)
from phitodo.tasks.task_store import TaskStore


def _ref(key: str = "issue#acme/app#42") -> ExternalRef:
    return ExternalRef(
        source=ExternalSource.GITHUB_ISSUE,
        key=key,
        url="https://github.com/acme/app/issues/42",
        repo="acme/app",
    )


def test_task_create_get_update_delete(tmp_path: Path) -> None:
    store = TaskStore(tmp_path / "tasks.sqlite3")

    task_id = store.create_task(
        title="  Write report ",
        notes="quarterly",
        due_date=date(2026, 3, 1),
        tags={"work", "q1"},
    )
    task = store.get_task(task_id)
    assert task is not None
    assert task.title == "Write report"
    assert task.status == TaskStatus.INBOX
    assert task.priority == TaskPriority.NONE
    assert task.kind == TaskKind.TASK
    assert task.due_date == date(2026, 3, 1)
    assert task.tags == {"work", "q1"}
    assert task.external_ref is None
    assert not task.is_sync_originated

    updated = store.update_task(task_id, priority=TaskPriority.HIGH, title="Write final report")
    assert updated.priority == TaskPriority.HIGH
    assert updated.title == "Write final report"
    assert updated.updated_at >= task.updated_at
    assert updated.created_at == task.created_at

    store.delete_task(task_id)
    assert store.get_task(task_id) is None
    assert store.count_tasks() == 0


def test_create_requires_title(store: TaskStore) -> None:
    with pytest.raises(ValueError):
        store.create_task(title="   ")


def test_update_and_delete_missing_task_raise_not_found(store: TaskStore) -> None:
    with pytest.raises(NotFoundError):
        store.update_task(999, title="x")
    with pytest.raises(NotFoundError):
        store.delete_task(999)


def test_update_rejects_store_owned_fields(store: TaskStore) -> None:
    task_id = store.create_task(title="a")
    with pytest.raises(ValueError):
        store.update_task(task_id, created_at=0.0)
    with pytest.raises(ValueError):
        store.update_task(task_id, id=5)


def test_completed_at_follows_status(store: TaskStore) -> None:
    task_id = store.create_task(title="a")
    assert store.get_task(task_id).completed_at is None  # type: ignore[union-attr]

    done = store.update_task(task_id, status=TaskStatus.COMPLETED)
    assert done.completed_at is not None

    # Re-completing keeps the first timestamp.
    again = store.update_task(task_id, status=TaskStatus.COMPLETED)
    assert again.completed_at == done.completed_at

    reopened = store.update_task(task_id, status=TaskStatus.ACTIVE)
    assert reopened.completed_at is None


def test_task_created_completed_gets_completed_at(store: TaskStore) -> None:
    task_id = store.create_task(title="already done", status=TaskStatus.COMPLETED)
    assert store.get_task(task_id).completed_at is not None  # type: ignore[union-attr]


def test_ids_are_never_reused(store: TaskStore) -> None:
    first = store.create_task(title="a")
    store.delete_task(first)
    second = store.create_task(title="b")
    assert second > first


def test_order_index_is_monotonic(store: TaskStore) -> None:
    a = store.get_task(store.create_task(title="a"))
    b = store.get_task(store.create_task(title="b"))
    assert a is not None and b is not None
    assert b.order_index > a.order_index


def test_external_ref_roundtrip_and_lookup(store: TaskStore) -> None:
    task_id = store.create_task(
        title="Fix login bug",
        kind=TaskKind.GITHUB_ISSUE,
        external_ref=_ref(),
        external_state_hash="open:abc",
    )

    found = store.find_by_external_key(ExternalSource.GITHUB_ISSUE, "issue#acme/app#42")
    assert found is not None
    assert found.id == task_id
    assert found.external_ref == _ref()
    assert found.external_state_hash == "open:abc"
    assert found.is_sync_originated

    # Same key under another source is a different identity.
    assert store.find_by_external_key(ExternalSource.GITHUB_PR, "issue#acme/app#42") is None
    assert [t.id for t in store.list_sync_tasks()] == [task_id]


def test_duplicate_external_key_is_rejected(store: TaskStore) -> None:
    store.create_task(title="one", external_ref=_ref())
    with pytest.raises(DuplicateExternalKeyError):
        store.create_task(title="two", external_ref=_ref())
    assert store.count_tasks() == 1


def test_unique_index_backs_up_the_check(store: TaskStore) -> None:
    """Even a raw insert that bypasses create_task cannot duplicate a key."""
    store.create_task(title="one", external_ref=_ref())
    conn = sqlite3.connect(str(store._db_path))
    try:
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                "INSERT INTO tasks(title, created_at, updated_at, ext_source, ext_key) "
                "VALUES ('x', 0, 0, 'github_issue', 'issue#acme/app#42')"
            )
    finally:
        conn.close()


def test_update_external_fields(store: TaskStore) -> None:
    task_id = store.create_task(title="t", external_ref=_ref(), external_state_hash="open:1")
    new_ref = ExternalRef(
        source=ExternalSource.GITHUB_ISSUE,
        key="issue#acme/app#42",
        url="https://github.com/acme/app/issues/42#moved",
        repo="acme/app",
    )
    task = store.update_task(task_id, external_ref=new_ref, external_state_hash="closed:2")
    assert task.external_ref == new_ref
    assert task.external_state_hash == "closed:2"


def test_query_with_predicate(store: TaskStore) -> None:
    store.create_task(title="a", priority=TaskPriority.HIGH)
    store.create_task(title="b")
    store.create_task(title="c", priority=TaskPriority.HIGH)

    titles = [t.title for t in store.query(lambda t: t.priority == TaskPriority.HIGH)]
    assert titles == ["a", "c"]
    assert len(store.query()) == 3


def test_projects_unique_source_repo_and_delete_unassigns(store: TaskStore) -> None:
    project = store.create_project(name="acme/app", source_repo="acme/app")
    with pytest.raises(DuplicateProjectError):
        store.create_project(name="again", source_repo="acme/app")

    # Several manual projects may share a name; only source_repo is unique.
    store.create_project(name="Home")
    store.create_project(name="Home")

    task_id = store.create_task(title="t", project_id=project.id)
    assert store.find_project_by_source_repo("acme/app") == project

    store.delete_project(project.id)
    assert store.get_project(project.id) is None
    task = store.get_task(task_id)
    assert task is not None
    assert task.project_id is None

    with pytest.raises(NotFoundError):
        store.delete_project(project.id)


def test_schema_migration_adds_missing_columns(tmp_path: Path) -> None:
    db = tmp_path / "old.sqlite3"
    conn = sqlite3.connect(str(db))
    conn.execute(
        "CREATE TABLE tasks (id INTEGER PRIMARY KEY AUTOINCREMENT, title TEXT NOT NULL, "
        "notes TEXT, status TEXT NOT NULL DEFAULT 'inbox', priority TEXT NOT NULL DEFAULT 'none', "
        "kind TEXT NOT NULL DEFAULT 'task', created_at REAL NOT NULL, updated_at REAL NOT NULL)"
    )
    conn.execute("INSERT INTO tasks(title, created_at, updated_at) VALUES ('legacy', 1, 1)")
    conn.commit()
    conn.close()

    store = TaskStore(db)
    (legacy,) = store.query()
    assert legacy.title == "legacy"
    assert legacy.tags == set()
    assert legacy.external_ref is None

    store.create_task(title="new", external_ref=_ref())
    assert store.count_tasks() == 2


def test_concurrent_writers_do_not_lose_updates(store: TaskStore) -> None:
    ids = [store.create_task(title=f"t{i}") for i in range(4)]
    errors: list[BaseException] = []

    def worker(task_id: int) -> None:
        try:
            for _ in range(10):
                store.update_task(task_id, priority=TaskPriority.LOW)
                store.update_task(task_id, status=TaskStatus.ACTIVE)
        except BaseException as e:  # pragma: no cover - surfaced by the assert below
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert all(t.status == TaskStatus.ACTIVE for t in store.query())
