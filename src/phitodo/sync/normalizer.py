# src/phitodo/sync/normalizer.py

"""
Raw API records -> ExternalItem.

Pure and deterministic: no I/O. Running time entries are measured against the
`now` the caller passes. Every GitHub category gets its own stable-key namespace, so a
self-authored PR that also requests your review yields two independent items.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Any

from ..tasks.task_models import ExternalSource
from .external import (
    ExternalItem,
    FetchCategory,
    IssuePayload,
    PullRequestPayload,
    RawGithubItem,
    RawTimeEntry,
    TimeEntryPayload,
    make_state_hash,
)

logger = logging.getLogger(__name__)

UNKNOWN_REPO = "unknown"
NO_PROJECT = "No Project"

_KEY_PREFIX = {
    ExternalSource.GITHUB_ISSUE: "issue",
    ExternalSource.GITHUB_PR: "pr",
    ExternalSource.GITHUB_REVIEW: "review",
}


def repo_name(item: RawGithubItem) -> str:
    """
    owner/repo for an issue or PR.

    Tries repository.full_name, then repository_url (.../repos/owner/repo),
    then html_url (https://github.com/owner/repo/...).
    """
    if item.repository_full_name:
        return item.repository_full_name

    if item.repository_url:
        parts = [p for p in item.repository_url.rstrip("/").split("/") if p]
        if len(parts) >= 2:
            return f"{parts[-2]}/{parts[-1]}"

    parts = item.html_url.split("/")
    if len(parts) >= 5 and parts[2] == "github.com":
        return f"{parts[3]}/{parts[4]}"

    return UNKNOWN_REPO


def stable_key(source: ExternalSource, repo: str, number: int) -> str:
    return f"{_KEY_PREFIX[source]}#{repo}#{number}"


def normalize_github(category: FetchCategory, records: Iterable[RawGithubItem]) -> list[ExternalItem]:
    source = category.source
    if not source.is_github:
        raise ValueError(f"{category} is not a GitHub category")

    out: list[ExternalItem] = []
    for rec in records:
        # The issues endpoint also lists PRs; those are tracked by the PR categories.
        if category == FetchCategory.ASSIGNED_ISSUES and rec.is_pull_request:
            continue

        repo = repo_name(rec)
        is_open = rec.state.strip().lower() != "closed"

        payload: IssuePayload | PullRequestPayload
        if source == ExternalSource.GITHUB_ISSUE:
            payload = IssuePayload(number=rec.number, description=rec.body)
        else:
            payload = PullRequestPayload(
                number=rec.number,
                author=rec.author,
                reviewers=tuple(rec.reviewers),
                description=rec.body,
            )

        out.append(
            ExternalItem(
                source=source,
                stable_key=stable_key(source, repo, rec.number),
                title=rec.title,
                url=rec.html_url,
                repo_or_workspace=repo,
                open=is_open,
                state_hash=make_state_hash(is_open, rec.title, rec.body, rec.html_url),
                payload=payload,
            )
        )
    return out


def _parse_ts(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logger.debug("Unparseable time entry timestamp: %r", raw)
        return None


def entry_duration_seconds(entry: RawTimeEntry, *, now: datetime) -> int:
    """Duration in seconds; running timers count elapsed time since start."""
    if entry.duration >= 0:
        return entry.duration
    start = _parse_ts(entry.start)
    if start is None:
        return 0
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    return max(0, int((now - start).total_seconds()))


def normalize_time_entries(
    records: Iterable[RawTimeEntry],
    *,
    now: datetime,
    project_names: dict[int, str] | None = None,
) -> list[ExternalItem]:
    names = project_names or {}
    out: list[ExternalItem] = []
    for rec in records:
        start = _parse_ts(rec.start)
        project = rec.project_name
        if project is None and rec.project_id is not None:
            project = names.get(rec.project_id)
        running = rec.duration < 0
        title = (rec.description or "").strip() or "(no description)"

        out.append(
            ExternalItem(
                source=ExternalSource.TOGGL_ENTRY,
                stable_key=str(rec.id),
                title=title,
                url="",
                repo_or_workspace=project or NO_PROJECT,
                open=running,
                state_hash=make_state_hash(running, title, rec.start, rec.stop, rec.duration, project),
                payload=TimeEntryPayload(
                    duration_seconds=entry_duration_seconds(rec, now=now),
                    day=start.date() if start else None,
                    running=running,
                    project_name=project,
                ),
            )
        )
    return out


def normalize(
    category: FetchCategory,
    records: Sequence[Any],
    *,
    now: datetime | None = None,
) -> list[ExternalItem]:
    """Dispatch on category. `now` is only consulted for time entries."""
    if category == FetchCategory.TIME_ENTRIES:
        return normalize_time_entries(records, now=now or datetime.now(timezone.utc))
    return normalize_github(category, records)
