# src/phitodo/sync/reconciler.py

"""
Reconciler: external items -> local tasks.

A refresh cycle has two phases:

1. fetch: every category fetcher runs concurrently; each one ends either with
   records or with a FetchError. Nothing touches the store. The caller may
   cancel this phase (e.g. the user quits).
2. apply: under the store's writer lock, items are normalized and matched to
   tasks by (source, stable_key). Runs to completion once started.

Rules per item (categories whose fetch failed are skipped entirely):
- unknown key            -> create an INBOX task
- known, COMPLETED        -> leave alone (never resurrect)
- known, same state hash  -> no write
- known, changed          -> refresh title/notes/url/hash only; status and
                             priority stay user-owned
After the items, tracked tasks missing from a *successful* fetch of their
category, and last seen open, are auto-completed.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from typing import Any

from ..core.errors import DuplicateExternalKeyError, FetchError
from ..core.ports import Fetcher, TaskRepo
from ..tasks.project_resolver import ProjectResolver
from ..tasks.task_models import ExternalRef, ExternalSource, Task, TaskKind, TaskStatus
from ..views.time_report import TimeReport, build_time_report
from .external import (
    GITHUB_CATEGORIES,
    ExternalItem,
    FetchCategory,
    closed_state_hash,
    state_hash_is_open,
)
from .normalizer import normalize

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CategoryResult:
    category: FetchCategory
    ok: bool
    records: Sequence[Any] = ()
    error: FetchError | None = None


@dataclass(frozen=True, slots=True)
class SyncError:
    scope: str  # fetch category or stable key
    message: str
    kind: str


@dataclass(slots=True)
class SyncSummary:
    created: int = 0
    updated: int = 0
    auto_completed: int = 0
    unchanged: int = 0
    skipped: int = 0
    retired: int = 0
    errors: list[SyncError] = field(default_factory=list)
    failed_categories: list[FetchCategory] = field(default_factory=list)
    time_report: TimeReport | None = None
    started_at: float = 0.0
    finished_at: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def changed(self) -> int:
        return self.created + self.updated + self.auto_completed + self.retired

    def to_dict(self) -> dict[str, Any]:
        return {
            "created": self.created,
            "updated": self.updated,
            "auto_completed": self.auto_completed,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "retired": self.retired,
            "errors": [{"scope": e.scope, "message": e.message, "kind": e.kind} for e in self.errors],
            "failed_categories": [c.value for c in self.failed_categories],
            "duration_seconds": max(0.0, self.finished_at - self.started_at),
        }


def _repo_of(task: Task) -> str | None:
    ref = task.external_ref
    if ref is None:
        return None
    if ref.repo:
        return ref.repo
    # issue#owner/repo#42
    parts = ref.key.split("#")
    return parts[1] if len(parts) == 3 else None


class Reconciler:
    """
    Applies fetched GitHub items to the task store and builds the time report.

    tracked_repos: when non-empty, only these repositories produce tasks; sync
    tasks of other repositories are handled by untracked_policy ("keep" leaves
    them alone, "complete" auto-completes them once).
    """

    def __init__(
        self,
        store: TaskRepo,
        resolver: ProjectResolver,
        *,
        fetchers: Mapping[FetchCategory, Fetcher] | None = None,
        tracked_repos: Iterable[str] = (),
        untracked_policy: str = "keep",
        hidden_projects: Iterable[str] = (),
    ) -> None:
        if untracked_policy not in ("keep", "complete"):
            raise ValueError(f"unknown untracked_policy: {untracked_policy}")
        self._store = store
        self._resolver = resolver
        self._fetchers: dict[FetchCategory, Fetcher] = dict(fetchers or {})
        self._tracked = {r.strip().lower() for r in tracked_repos if r.strip()}
        self._untracked_policy = untracked_policy
        self._hidden_projects = list(hidden_projects)

    # ---- fetch phase ----

    @staticmethod
    async def _run_fetcher(category: FetchCategory, fetcher: Fetcher) -> CategoryResult:
        try:
            records = await fetcher()
        except FetchError as e:
            return CategoryResult(category=category, ok=False, error=e)
        except Exception as e:
            # Anything the transport did not classify still only fails its own category.
            logger.debug("Fetcher %s raised", category.value, exc_info=True)
            return CategoryResult(
                category=category,
                ok=False,
                error=FetchError(category.value, f"{e.__class__.__name__}: {e}", kind="http"),
            )
        return CategoryResult(category=category, ok=True, records=list(records))

    async def fetch(
        self, fetchers: Mapping[FetchCategory, Fetcher] | None = None
    ) -> dict[FetchCategory, CategoryResult]:
        """Run all fetchers concurrently. Cancellation propagates to the caller."""
        active = dict(fetchers if fetchers is not None else self._fetchers)
        if not active:
            return {}
        results = await asyncio.gather(
            *(self._run_fetcher(cat, fn) for cat, fn in active.items())
        )
        return {r.category: r for r in results}

    async def sync(self, fetchers: Mapping[FetchCategory, Fetcher] | None = None) -> SyncSummary:
        """One reconciliation cycle: fetch everything, then apply. Always returns a summary."""
        started = time.time()
        results = await self.fetch(fetchers)
        summary = self.apply(results)
        summary.started_at = started
        return summary

    # ---- apply phase ----

    def _is_tracked(self, repo: str | None) -> bool:
        if not self._tracked:
            return True
        return repo is not None and repo.lower() in self._tracked

    def apply(self, results: Mapping[FetchCategory, CategoryResult]) -> SyncSummary:
        summary = SyncSummary(started_at=time.time())

        items_by_category: dict[FetchCategory, list[ExternalItem]] = {}
        for category, result in results.items():
            if not result.ok:
                err = result.error or FetchError(category.value, "fetch failed")
                logger.warning("Fetch failed category=%s kind=%s: %s", category.value, err.kind, err.message)
                summary.failed_categories.append(category)
                summary.errors.append(SyncError(scope=category.value, message=err.message, kind=err.kind))
                continue
            try:
                items_by_category[category] = normalize(category, result.records)
            except Exception as e:
                logger.exception("Normalization failed category=%s", category.value)
                summary.failed_categories.append(category)
                summary.errors.append(SyncError(scope=category.value, message=str(e), kind="parse"))

        time_items = items_by_category.pop(FetchCategory.TIME_ENTRIES, None)
        if time_items is not None:
            summary.time_report = build_time_report(time_items, hidden_projects=self._hidden_projects)

        with self._store.exclusive():
            seen: dict[ExternalSource, set[str]] = {}
            for category in GITHUB_CATEGORIES:
                items = items_by_category.get(category)
                if items is None:
                    continue
                keys = seen.setdefault(category.source, set())
                for item in items:
                    keys.add(item.stable_key)
                    self._apply_item_safely(item, summary)

            self._complete_vanished(seen, summary)

        summary.finished_at = time.time()
        logger.info(
            "Sync done: created=%d updated=%d auto_completed=%d unchanged=%d skipped=%d retired=%d errors=%d",
            summary.created,
            summary.updated,
            summary.auto_completed,
            summary.unchanged,
            summary.skipped,
            summary.retired,
            len(summary.errors),
        )
        return summary

    def _apply_item_safely(self, item: ExternalItem, summary: SyncSummary) -> None:
        try:
            self._apply_item(item, summary)
        except DuplicateExternalKeyError as e:
            logger.error("Duplicate external key while syncing %s: %s", item.stable_key, e)
            summary.errors.append(SyncError(scope=item.stable_key, message=str(e), kind="duplicate"))
        except Exception as e:
            logger.exception("Failed to apply item %s", item.stable_key)
            summary.errors.append(SyncError(scope=item.stable_key, message=str(e), kind="internal"))

    def _apply_item(self, item: ExternalItem, summary: SyncSummary) -> None:
        if not self._is_tracked(item.repo_or_workspace):
            summary.skipped += 1
            return

        project = self._resolver.ensure(item.repo_or_workspace)
        existing = self._store.find_by_external_key(item.source, item.stable_key)

        if existing is None:
            if not item.open:
                # Closed before we ever saw it: nothing to track.
                summary.skipped += 1
                return
            self._store.create_task(
                title=item.title or item.stable_key,
                notes=item.description if item.source == ExternalSource.GITHUB_ISSUE else None,
                status=TaskStatus.INBOX,
                kind=TaskKind.for_source(item.source),
                project_id=project.id,
                external_ref=ExternalRef(
                    source=item.source,
                    key=item.stable_key,
                    url=item.url,
                    repo=item.repo_or_workspace,
                ),
                external_state_hash=item.state_hash,
            )
            summary.created += 1
            logger.debug("Created task for %s", item.stable_key)
            return

        if existing.is_completed:
            summary.unchanged += 1
            return

        if existing.external_state_hash == item.state_hash:
            summary.unchanged += 1
            return

        assert existing.external_ref is not None
        fields: dict[str, Any] = {
            "title": item.title or existing.title,
            "external_ref": replace(existing.external_ref, url=item.url, repo=item.repo_or_workspace),
            "external_state_hash": item.state_hash,
        }
        if item.source == ExternalSource.GITHUB_ISSUE:
            fields["notes"] = item.description

        if not item.open and state_hash_is_open(existing.external_state_hash) is not False:
            fields["status"] = TaskStatus.COMPLETED
            self._store.update_task(existing.id, **fields)
            summary.auto_completed += 1
            logger.info("Auto-completed task id=%s (%s closed)", existing.id, item.stable_key)
            return

        self._store.update_task(existing.id, **fields)
        summary.updated += 1
        logger.debug("Updated task id=%s from %s", existing.id, item.stable_key)

    def _complete_vanished(self, seen: Mapping[ExternalSource, set[str]], summary: SyncSummary) -> None:
        for task in self._store.list_sync_tasks():
            ref = task.external_ref
            if ref is None or not ref.source.is_github or task.is_completed:
                continue

            if not self._is_tracked(_repo_of(task)):
                if self._untracked_policy == "complete":
                    self._retire(task, summary)
                continue

            keys = seen.get(ref.source)
            if keys is None:
                # Category failed (or was not fetched) this cycle: absence means nothing.
                continue
            if ref.key in keys:
                continue
            if state_hash_is_open(task.external_state_hash) is False:
                # Closure already processed once; the user reopened it since.
                continue

            try:
                self._store.update_task(
                    task.id,
                    status=TaskStatus.COMPLETED,
                    external_state_hash=closed_state_hash(task.external_state_hash),
                )
            except Exception as e:
                logger.exception("Failed to auto-complete task id=%s", task.id)
                summary.errors.append(SyncError(scope=ref.key, message=str(e), kind="internal"))
                continue
            summary.auto_completed += 1
            logger.info("Auto-completed task id=%s (%s no longer open)", task.id, ref.key)

    def _retire(self, task: Task, summary: SyncSummary) -> None:
        assert task.external_ref is not None
        try:
            self._store.update_task(
                task.id,
                status=TaskStatus.COMPLETED,
                external_state_hash=closed_state_hash(task.external_state_hash),
            )
        except Exception as e:
            logger.exception("Failed to retire task id=%s", task.id)
            summary.errors.append(SyncError(scope=task.external_ref.key, message=str(e), kind="internal"))
            return
        summary.retired += 1
        logger.info("Retired task id=%s from untracked repo %s", task.id, _repo_of(task))
