# src/phitodo/core/errors.py

"""
Exception types shared by the store, the transport clients and the reconciler.

Only NotFoundError is meant to reach end users (as an "item no longer exists"
notice). Fetch and item failures are collected into SyncSummary.errors instead.
"""

from __future__ import annotations


class PhitodoError(Exception):
    """Base class for all application errors."""


class NotFoundError(PhitodoError):
    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class DuplicateExternalKeyError(PhitodoError):
    """A second task was about to be created for an already tracked external item."""

    def __init__(self, source: str, key: str) -> None:
        super().__init__(f"task for {source}:{key} already exists")
        self.source = source
        self.key = key


class DuplicateProjectError(PhitodoError):
    def __init__(self, source_repo: str) -> None:
        super().__init__(f"project for repo {source_repo} already exists")
        self.source_repo = source_repo


class FetchError(PhitodoError):
    """
    One fetch category failed (network, auth, rate limit, bad payload).

    kind is one of: auth, rate_limited, http, network, parse.
    """

    def __init__(self, category: str, message: str, *, kind: str = "http") -> None:
        super().__init__(message)
        self.category = category
        self.message = message
        self.kind = kind

    def __str__(self) -> str:
        return f"{self.category}: {self.message}"


def friendly_fetch_error_message(err: FetchError) -> str:
    if err.kind == "auth":
        return f"{err.category}: invalid or expired token. Check PHITODO_GITHUB_TOKEN / PHITODO_TOGGL_TOKEN."
    if err.kind == "rate_limited":
        return f"{err.category}: rate limit reached. Try again later."
    if err.kind == "network":
        return f"{err.category}: network/timeout error. Try again later."
    return str(err)
