# src/phitodo/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import threading
import time
from collections.abc import Callable, Iterator
from datetime import date
from pathlib import Path
from typing import Any

from ..core.errors import DuplicateExternalKeyError, DuplicateProjectError, NotFoundError
from .task_models import (
    ExternalRef,
    ExternalSource,
    Project,
    Task,
    TaskKind,
    TaskPriority,
    TaskStatus,
)

logger = logging.getLogger(__name__)

# Fields a caller may change through update_task(). id/created_at/order_index are store-owned.
_UPDATABLE = frozenset(
    {
        "title",
        "notes",
        "status",
        "priority",
        "kind",
        "due_date",
        "start_date",
        "completed_at",
        "project_id",
        "tags",
        "external_ref",
        "external_state_hash",
    }
)


class TaskStore:
    """
    SQLite task + project store.

    The schema is migration-safe the same way as before:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Uniqueness:
    - at most one task per (ext_source, ext_key) (partial unique index)
    - at most one project per source_repo (partial unique index)

    Concurrency:
    - each method opens its own SQLite connection
    - every write runs in a single BEGIN IMMEDIATE transaction, so readers never
      see a half-applied update
    - writes also take an in-process re-entrant lock; exclusive() holds that lock
      across several calls (the reconciler's apply phase)
    """

    def __init__(self, db_path: str | Path = "phitodo.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    @contextlib.contextmanager
    def exclusive(self) -> Iterator[None]:
        """Hold the writer lock across several operations."""
        with self._lock:
            yield

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    @contextlib.contextmanager
    def _write(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            conn = self._get_conn()
            try:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    yield conn
                except BaseException:
                    conn.execute("ROLLBACK")
                    raise
                conn.execute("COMMIT")
            finally:
                conn.close()

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS projects (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    source_repo TEXT,
                    order_index INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    notes TEXT,
                    status TEXT NOT NULL DEFAULT 'inbox',
                    priority TEXT NOT NULL DEFAULT 'none',
                    kind TEXT NOT NULL DEFAULT 'task',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("due_date", "TEXT")
            add_col("start_date", "TEXT")
            add_col("completed_at", "REAL")
            add_col("project_id", "INTEGER")
            add_col("tags", "TEXT NOT NULL DEFAULT '[]'")
            add_col("order_index", "INTEGER NOT NULL DEFAULT 0")
            add_col("ext_source", "TEXT")
            add_col("ext_key", "TEXT")
            add_col("ext_url", "TEXT")
            add_col("ext_repo", "TEXT")
            add_col("ext_state_hash", "TEXT")

            cur.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_tasks_external "
                "ON tasks(ext_source, ext_key) WHERE ext_key IS NOT NULL"
            )
            cur.execute(
                "CREATE UNIQUE INDEX IF NOT EXISTS idx_projects_source_repo "
                "ON projects(source_repo) WHERE source_repo IS NOT NULL"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status_due ON tasks(status, due_date)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project_id)")
        finally:
            conn.close()

    @staticmethod
    def _tags_to_str(tags: set[str] | list[str] | None) -> str:
        if not tags:
            return "[]"
        clean = sorted({str(t).strip() for t in tags if str(t).strip()})
        return json.dumps(clean, ensure_ascii=False)

    @staticmethod
    def _str_to_tags(s: str | None) -> set[str]:
        if not s:
            return set()
        try:
            val = json.loads(s)
        except ValueError:
            return set()
        return {str(t) for t in val} if isinstance(val, list) else set()

    @staticmethod
    def _date_to_str(d: date | None) -> str | None:
        return d.isoformat() if d is not None else None

    @staticmethod
    def _str_to_date(s: str | None) -> date | None:
        if not s:
            return None
        try:
            return date.fromisoformat(s)
        except ValueError:
            logger.warning("Ignoring malformed date in DB: %r", s)
            return None

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        ext_ref: ExternalRef | None = None
        if row["ext_key"]:
            ext_ref = ExternalRef(
                source=ExternalSource(row["ext_source"]),
                key=str(row["ext_key"]),
                url=str(row["ext_url"] or ""),
                repo=row["ext_repo"],
            )
        return Task(
            id=int(row["id"]),
            title=str(row["title"] or ""),
            notes=row["notes"],
            status=TaskStatus.from_db(row["status"]),
            priority=TaskPriority.from_db(row["priority"]),
            kind=TaskKind.from_db(row["kind"]),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            due_date=self._str_to_date(row["due_date"]),
            start_date=self._str_to_date(row["start_date"]),
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
            project_id=int(row["project_id"]) if row["project_id"] is not None else None,
            tags=self._str_to_tags(row["tags"]),
            order_index=int(row["order_index"] or 0),
            external_ref=ext_ref,
            external_state_hash=row["ext_state_hash"],
        )

    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> Project:
        return Project(
            id=int(row["id"]),
            name=str(row["name"] or ""),
            source_repo=row["source_repo"],
            order_index=int(row["order_index"] or 0),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
        )

    @staticmethod
    def _next_order_index(conn: sqlite3.Connection, table: str) -> int:
        (n,) = conn.execute(f"SELECT COALESCE(MAX(order_index), 0) + 1 FROM {table}").fetchone()
        return int(n)

    @staticmethod
    def _fetch_task_row(conn: sqlite3.Connection, task_id: int) -> sqlite3.Row | None:
        return conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()

    # ---- tasks ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def create_task(
        self,
        *,
        title: str,
        notes: str | None = None,
        status: TaskStatus = TaskStatus.INBOX,
        priority: TaskPriority = TaskPriority.NONE,
        kind: TaskKind = TaskKind.TASK,
        due_date: date | None = None,
        start_date: date | None = None,
        project_id: int | None = None,
        tags: set[str] | None = None,
        external_ref: ExternalRef | None = None,
        external_state_hash: str | None = None,
    ) -> int:
        """
        Insert a task and return its id.

        Raises DuplicateExternalKeyError if external_ref is already tracked. Callers
        are expected to check find_by_external_key() first; this is the last guard.
        """
        if not title or not title.strip():
            raise ValueError("title is required")

        now = time.time()
        completed_at = now if status == TaskStatus.COMPLETED else None

        with self._write() as conn:
            if external_ref is not None:
                hit = conn.execute(
                    "SELECT id FROM tasks WHERE ext_source = ? AND ext_key = ?",
                    (external_ref.source.value, external_ref.key),
                ).fetchone()
                if hit is not None:
                    raise DuplicateExternalKeyError(external_ref.source.value, external_ref.key)

            try:
                cur = conn.execute(
                    """
                    INSERT INTO tasks(
                        title, notes, status, priority, kind,
                        created_at, updated_at, due_date, start_date, completed_at,
                        project_id, tags, order_index,
                        ext_source, ext_key, ext_url, ext_repo, ext_state_hash
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        title.strip(),
                        notes,
                        status.value,
                        priority.value,
                        kind.value,
                        now,
                        now,
                        self._date_to_str(due_date),
                        self._date_to_str(start_date),
                        completed_at,
                        project_id,
                        self._tags_to_str(tags),
                        self._next_order_index(conn, "tasks"),
                        external_ref.source.value if external_ref else None,
                        external_ref.key if external_ref else None,
                        external_ref.url if external_ref else None,
                        external_ref.repo if external_ref else None,
                        external_state_hash,
                    ),
                )
            except sqlite3.IntegrityError as e:
                if external_ref is not None:
                    raise DuplicateExternalKeyError(external_ref.source.value, external_ref.key) from e
                raise

            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)

        logger.debug(
            "Task added id=%s kind=%s status=%s ext=%s",
            task_id,
            kind.value,
            status.value,
            external_ref.key if external_ref else None,
        )
        return task_id

    def get_task(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            row = self._fetch_task_row(conn, task_id)
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def update_task(self, task_id: int, **fields: Any) -> Task:
        """
        Update the given fields atomically and bump updated_at. Returns the new Task.

        completed_at follows status unless passed explicitly:
        - entering COMPLETED sets it to now
        - leaving COMPLETED clears it
        """
        unknown = set(fields) - _UPDATABLE
        if unknown:
            raise ValueError(f"cannot update field(s): {', '.join(sorted(unknown))}")

        now = time.time()

        with self._write() as conn:
            row = self._fetch_task_row(conn, task_id)
            if row is None:
                raise NotFoundError("task", task_id)
            old = self._row_to_task(row)

            if "status" in fields and "completed_at" not in fields:
                new_status = TaskStatus(fields["status"])
                if new_status == TaskStatus.COMPLETED and not old.is_completed:
                    fields["completed_at"] = now
                elif new_status != TaskStatus.COMPLETED and old.is_completed:
                    fields["completed_at"] = None

            sets: list[str] = []
            params: list[Any] = []

            for name, value in fields.items():
                if name in ("due_date", "start_date"):
                    sets.append(f"{name} = ?")
                    params.append(self._date_to_str(value))
                elif name == "tags":
                    sets.append("tags = ?")
                    params.append(self._tags_to_str(value))
                elif name in ("status", "priority", "kind"):
                    sets.append(f"{name} = ?")
                    params.append(str(value))
                elif name == "external_ref":
                    ref: ExternalRef | None = value
                    sets.extend(["ext_source = ?", "ext_key = ?", "ext_url = ?", "ext_repo = ?"])
                    if ref is None:
                        params.extend([None, None, None, None])
                    else:
                        params.extend([ref.source.value, ref.key, ref.url, ref.repo])
                elif name == "external_state_hash":
                    sets.append("ext_state_hash = ?")
                    params.append(value)
                else:
                    sets.append(f"{name} = ?")
                    params.append(value)

            sets.append("updated_at = ?")
            params.append(now)
            params.append(int(task_id))

            try:
                conn.execute(f"UPDATE tasks SET {', '.join(sets)} WHERE id = ?", params)
            except sqlite3.IntegrityError as e:
                ref = fields.get("external_ref")
                if ref is not None:
                    raise DuplicateExternalKeyError(ref.source.value, ref.key) from e
                raise

            updated = self._fetch_task_row(conn, task_id)

        assert updated is not None
        return self._row_to_task(updated)

    def delete_task(self, task_id: int) -> None:
        with self._write() as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            if cur.rowcount != 1:
                raise NotFoundError("task", task_id)
        logger.debug("Task deleted id=%s", task_id)

    def find_by_external_key(self, source: ExternalSource, key: str) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM tasks WHERE ext_source = ? AND ext_key = ?",
                (ExternalSource(source).value, key),
            ).fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def query(self, predicate: Callable[[Task], bool] | None = None) -> list[Task]:
        """All tasks in display order, optionally filtered in Python."""
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM tasks ORDER BY order_index ASC, created_at ASC").fetchall()
        finally:
            conn.close()
        tasks = [self._row_to_task(r) for r in rows]
        if predicate is None:
            return tasks
        return [t for t in tasks if predicate(t)]

    def list_sync_tasks(self) -> list[Task]:
        """Every sync-originated task (non-empty external_ref)."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE ext_key IS NOT NULL ORDER BY id ASC"
            ).fetchall()
            return [self._row_to_task(r) for r in rows]
        finally:
            conn.close()

    # ---- projects ----

    def create_project(self, *, name: str, source_repo: str | None = None) -> Project:
        if not name or not name.strip():
            raise ValueError("name is required")

        now = time.time()
        with self._write() as conn:
            try:
                cur = conn.execute(
                    """
                    INSERT INTO projects(name, source_repo, order_index, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (name.strip(), source_repo, self._next_order_index(conn, "projects"), now, now),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateProjectError(source_repo or name) from e
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (cur.lastrowid,)).fetchone()

        project = self._row_to_project(row)
        logger.debug("Project added id=%s name=%s source_repo=%s", project.id, project.name, source_repo)
        return project

    def get_project(self, project_id: int) -> Project | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (int(project_id),)).fetchone()
            return self._row_to_project(row) if row else None
        finally:
            conn.close()

    def find_project_by_source_repo(self, source_repo: str) -> Project | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM projects WHERE source_repo = ?", (source_repo,)
            ).fetchone()
            return self._row_to_project(row) if row else None
        finally:
            conn.close()

    def list_projects(self) -> list[Project]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM projects ORDER BY order_index ASC").fetchall()
            return [self._row_to_project(r) for r in rows]
        finally:
            conn.close()

    def delete_project(self, project_id: int) -> None:
        """Delete a project; its tasks stay and become project-less."""
        now = time.time()
        with self._write() as conn:
            cur = conn.execute("DELETE FROM projects WHERE id = ?", (int(project_id),))
            if cur.rowcount != 1:
                raise NotFoundError("project", project_id)
            conn.execute(
                "UPDATE tasks SET project_id = NULL, updated_at = ? WHERE project_id = ?",
                (now, int(project_id)),
            )
        logger.debug("Project deleted id=%s", project_id)
