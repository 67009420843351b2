# src/phitodo/sync/toggl_client.py

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import date, timedelta
from typing import Any

import httpx

from ..core.errors import FetchError
from ..core.ports import Fetcher
from .external import FetchCategory, RawTimeEntry
from .http import get_json, make_timeout

logger = logging.getLogger(__name__)

_CATEGORY = FetchCategory.TIME_ENTRIES.value


def _classify(status: int, headers: httpx.Headers) -> tuple[str, str]:
    if status in (402, 429):
        return "rate_limited", "Request limit reached. Try again later."
    if status in (401, 403):
        return "auth", "Invalid token. Check PHITODO_TOGGL_TOKEN."
    return "http", f"HTTP error: {status}"


def _parse_entries(data: Any) -> list[RawTimeEntry]:
    # The API answers either with a bare list or with {"items": [...]}.
    if isinstance(data, dict):
        data = data.get("items")
    if not isinstance(data, list):
        raise FetchError(_CATEGORY, "unexpected time entries payload", kind="parse")
    try:
        return [RawTimeEntry.from_api(e) for e in data if isinstance(e, dict)]
    except (KeyError, TypeError, ValueError) as e:
        raise FetchError(_CATEGORY, f"malformed time entry ({e})", kind="parse") from e


class TogglClient:
    """Async client for the Toggl Track v9 API (time entries + project names)."""

    def __init__(
        self,
        *,
        api_base: str = "https://api.track.toggl.com/api/v9",
        timeout_seconds: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_base = api_base.rstrip("/")
        self._timeout = make_timeout(timeout_seconds)
        self._transport = transport

    def _client(self, token: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._api_base,
            auth=(token, "api_token"),
            headers={"Content-Type": "application/json"},
            timeout=self._timeout,
            transport=self._transport,
        )

    async def fetch_time_entries(self, token: str, start_date: date, end_date: date) -> list[RawTimeEntry]:
        async with self._client(token) as client:
            data = await get_json(
                client,
                "/me/time_entries",
                category=_CATEGORY,
                classify=_classify,
                params={
                    "start_date": start_date.isoformat(),
                    "end_date": end_date.isoformat(),
                    "meta": "true",
                },
            )
        return _parse_entries(data)

    async def fetch_projects(self, token: str) -> dict[int, str]:
        async with self._client(token) as client:
            data = await get_json(client, "/me/projects", category=_CATEGORY, classify=_classify)
        if not isinstance(data, list):
            logger.debug("Toggl projects payload is not a list; ignoring")
            return {}
        out: dict[int, str] = {}
        for p in data:
            if isinstance(p, dict) and p.get("id") is not None and p.get("name"):
                out[int(p["id"])] = str(p["name"])
        return out

    async def fetch_recent_entries(self, token: str, *, days: int, today: date) -> list[RawTimeEntry]:
        """Entries of the last `days` days with project names filled in."""
        start = today - timedelta(days=days)
        # end_date is exclusive on the API side
        end = today + timedelta(days=1)

        entries, projects = await asyncio.gather(
            self.fetch_time_entries(token, start, end),
            self.fetch_projects(token),
        )

        enriched: list[RawTimeEntry] = []
        for e in entries:
            if e.project_name is None and e.project_id is not None and e.project_id in projects:
                e = replace(e, project_name=projects[e.project_id])
            enriched.append(e)
        logger.debug("Toggl: %d entries over %d days", len(enriched), days)
        return enriched

    def fetchers(self, token: str, *, days: int, today: date) -> dict[FetchCategory, Fetcher]:
        return {
            FetchCategory.TIME_ENTRIES: lambda: self.fetch_recent_entries(token, days=days, today=today),
        }
