# src/phitodo/sync/github_client.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.errors import FetchError
from ..core.ports import Fetcher
from .external import FetchCategory, RawGithubItem
from .http import get_json_pages, make_timeout

logger = logging.getLogger(__name__)

_USER_AGENT = "phitodo"


def _classify(status: int, headers: httpx.Headers) -> tuple[str, str]:
    if status == 401:
        return "auth", "Invalid token. Check PHITODO_GITHUB_TOKEN."
    if status == 429 or (status == 403 and headers.get("x-ratelimit-remaining") == "0"):
        reset = headers.get("x-ratelimit-reset")
        suffix = f" (resets at {reset})" if reset else ""
        return "rate_limited", f"GitHub rate limit reached{suffix}."
    if status == 403:
        return "auth", "Token lacks permission for this query (HTTP 403)."
    return "http", f"HTTP error: {status}"


class GitHubClient:
    """
    Thin async client for the three GitHub queries we track.

    The token is an argument of every call; the client keeps no session state,
    so a token change in Settings takes effect on the next refresh.
    """

    def __init__(
        self,
        *,
        api_base: str = "https://api.github.com",
        timeout_seconds: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_base = api_base.rstrip("/")
        self._timeout = make_timeout(timeout_seconds)
        self._transport = transport

    def _client(self, token: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._api_base,
            headers={
                "Authorization": f"token {token}",
                "Accept": "application/vnd.github.v3+json",
                "User-Agent": _USER_AGENT,
            },
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _search(self, token: str, category: FetchCategory, query: str) -> list[RawGithubItem]:
        async with self._client(token) as client:
            pages = await get_json_pages(
                client,
                "/search/issues",
                category=category.value,
                classify=_classify,
                params={"q": query, "per_page": 100},
            )
        raw: list[Any] = []
        total = None
        for page in pages:
            items = page.get("items") if isinstance(page, dict) else None
            if not isinstance(items, list):
                raise FetchError(category.value, "search response has no items list", kind="parse")
            if page.get("incomplete_results"):
                raise FetchError(category.value, "GitHub returned incomplete search results", kind="parse")
            if total is None:
                total = page.get("total_count")
            raw.extend(items)
        # Absence from a short result must not read as "closed".
        if isinstance(total, int) and len(raw) < total:
            raise FetchError(category.value, f"search returned {len(raw)} of {total} items", kind="parse")
        return self._parse_items(category, raw)

    @staticmethod
    def _parse_items(category: FetchCategory, items: list[Any]) -> list[RawGithubItem]:
        try:
            return [RawGithubItem.from_api(i) for i in items if isinstance(i, dict)]
        except (KeyError, TypeError, ValueError) as e:
            raise FetchError(category.value, f"malformed item ({e})", kind="parse") from e

    async def fetch_assigned_issues(self, token: str) -> list[RawGithubItem]:
        """Open issues assigned to the token's user (PRs filtered out)."""
        category = FetchCategory.ASSIGNED_ISSUES
        async with self._client(token) as client:
            pages = await get_json_pages(
                client,
                "/issues",
                category=category.value,
                classify=_classify,
                params={"filter": "assigned", "state": "open", "per_page": 100},
            )
        data: list[Any] = []
        for page in pages:
            if not isinstance(page, list):
                raise FetchError(category.value, "expected a JSON list of issues", kind="parse")
            data.extend(page)
        items = [i for i in self._parse_items(category, data) if not i.is_pull_request]
        logger.debug("GitHub %s: %d items", category.value, len(items))
        return items

    async def fetch_authored_prs(self, token: str) -> list[RawGithubItem]:
        items = await self._search(token, FetchCategory.AUTHORED_PRS, "author:@me is:open is:pr")
        logger.debug("GitHub authored_prs: %d items", len(items))
        return items

    async def fetch_review_requested_prs(self, token: str) -> list[RawGithubItem]:
        items = await self._search(
            token, FetchCategory.REVIEW_REQUESTS, "review-requested:@me is:open is:pr"
        )
        logger.debug("GitHub review_requests: %d items", len(items))
        return items

    def fetchers(self, token: str) -> dict[FetchCategory, Fetcher]:
        """One zero-argument fetch function per category, bound to `token`."""
        return {
            FetchCategory.ASSIGNED_ISSUES: lambda: self.fetch_assigned_issues(token),
            FetchCategory.AUTHORED_PRS: lambda: self.fetch_authored_prs(token),
            FetchCategory.REVIEW_REQUESTS: lambda: self.fetch_review_requested_prs(token),
        }
