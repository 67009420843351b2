# src/phitodo/sync/external.py

"""
Shapes exchanged between the transport clients, the normalizer and the reconciler.

- Raw*: minimal records deserialized by the HTTP clients (one per API object).
- ExternalItem: normalized, ephemeral record with a stable identity key and a
  source-specific payload (tagged by `source`).

State hashes carry the open/closed flag as a prefix ("open:<digest>" or
"closed:<digest>"), so the reconciler can tell from a stored hash whether the
item was last seen open.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from typing import Any

from ..tasks.task_models import ExternalSource

_OPEN = "open"
_CLOSED = "closed"


class FetchCategory(StrEnum):
    ASSIGNED_ISSUES = "assigned_issues"
    AUTHORED_PRS = "authored_prs"
    REVIEW_REQUESTS = "review_requests"
    TIME_ENTRIES = "time_entries"

    @property
    def source(self) -> ExternalSource:
        return _SOURCE_BY_CATEGORY[self]


_SOURCE_BY_CATEGORY = {
    FetchCategory.ASSIGNED_ISSUES: ExternalSource.GITHUB_ISSUE,
    FetchCategory.AUTHORED_PRS: ExternalSource.GITHUB_PR,
    FetchCategory.REVIEW_REQUESTS: ExternalSource.GITHUB_REVIEW,
    FetchCategory.TIME_ENTRIES: ExternalSource.TOGGL_ENTRY,
}

GITHUB_CATEGORIES = (
    FetchCategory.ASSIGNED_ISSUES,
    FetchCategory.AUTHORED_PRS,
    FetchCategory.REVIEW_REQUESTS,
)


# ---- raw records ----


@dataclass(frozen=True, slots=True)
class RawGithubItem:
    id: int
    number: int
    title: str
    html_url: str
    state: str
    body: str | None = None
    repository_full_name: str | None = None
    repository_url: str | None = None
    author: str | None = None
    reviewers: tuple[str, ...] = ()
    is_pull_request: bool = False

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> RawGithubItem:
        """Build from a GitHub issue/search JSON object."""
        repo = data.get("repository") or {}
        user = data.get("user") or {}
        reviewers = tuple(
            str(r.get("login"))
            for r in (data.get("requested_reviewers") or [])
            if isinstance(r, dict) and r.get("login")
        )
        return cls(
            id=int(data["id"]),
            number=int(data.get("number") or 0),
            title=str(data.get("title") or ""),
            html_url=str(data.get("html_url") or ""),
            state=str(data.get("state") or "open"),
            body=data.get("body"),
            repository_full_name=repo.get("full_name") if isinstance(repo, dict) else None,
            repository_url=data.get("repository_url"),
            author=user.get("login") if isinstance(user, dict) else None,
            reviewers=reviewers,
            is_pull_request=data.get("pull_request") is not None,
        )


@dataclass(frozen=True, slots=True)
class RawTimeEntry:
    id: int
    start: str
    duration: int  # seconds; negative while the timer is running
    description: str | None = None
    stop: str | None = None
    project_id: int | None = None
    project_name: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> RawTimeEntry:
        pid = data.get("project_id", data.get("pid"))
        return cls(
            id=int(data["id"]),
            start=str(data.get("start") or ""),
            duration=int(data.get("duration") or 0),
            description=data.get("description"),
            stop=data.get("stop"),
            project_id=int(pid) if pid is not None else None,
            project_name=data.get("project_name"),
        )


# ---- normalized items ----


@dataclass(frozen=True, slots=True)
class IssuePayload:
    number: int
    description: str | None = None


@dataclass(frozen=True, slots=True)
class PullRequestPayload:
    number: int
    author: str | None = None
    reviewers: tuple[str, ...] = ()
    description: str | None = None


@dataclass(frozen=True, slots=True)
class TimeEntryPayload:
    duration_seconds: int
    day: date | None
    running: bool = False
    project_name: str | None = None


Payload = IssuePayload | PullRequestPayload | TimeEntryPayload


@dataclass(frozen=True, slots=True)
class ExternalItem:
    source: ExternalSource
    stable_key: str
    title: str
    url: str
    repo_or_workspace: str
    open: bool
    state_hash: str
    payload: Payload

    @property
    def description(self) -> str | None:
        if isinstance(self.payload, (IssuePayload, PullRequestPayload)):
            return self.payload.description
        return None


# ---- state hash helpers ----


def make_state_hash(is_open: bool, *parts: Any) -> str:
    digest = hashlib.sha256(
        json.dumps(list(parts), ensure_ascii=False, default=str).encode("utf-8")
    ).hexdigest()[:32]
    return f"{_OPEN if is_open else _CLOSED}:{digest}"


def state_hash_is_open(state_hash: str | None) -> bool | None:
    """True/False from the hash's flag; None when there is no (recognizable) flag."""
    if not state_hash:
        return None
    flag, sep, _ = state_hash.partition(":")
    if not sep:
        return None
    if flag == _OPEN:
        return True
    if flag == _CLOSED:
        return False
    return None


def closed_state_hash(state_hash: str | None) -> str:
    """Same digest, flag flipped to closed."""
    _, sep, digest = (state_hash or "").partition(":")
    return f"{_CLOSED}:{digest if sep else (state_hash or '')}"
