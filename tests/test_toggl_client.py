# tests/test_toggl_client.py

from __future__ import annotations

import base64
from datetime import date

import httpx
import pytest

from phitodo.core.errors import FetchError
from phitodo.sync.external import FetchCategory
from phitodo.sync.toggl_client import TogglClient

API = "https://api.toggl.test/api/v9"


def _client(handler) -> TogglClient:
    return TogglClient(api_base=API, timeout_seconds=5.0, transport=httpx.MockTransport(handler))


def _router(entries_payload) -> tuple[list[httpx.Request], object]:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.url.path.endswith("/me/time_entries"):
            return httpx.Response(200, json=entries_payload)
        if request.url.path.endswith("/me/projects"):
            return httpx.Response(200, json=[{"id": 5, "name": "Client A"}, {"id": 6}])
        return httpx.Response(404)

    return seen, handler


@pytest.mark.asyncio
async def test_recent_entries_window_auth_and_project_names() -> None:
    seen, handler = _router(
        [
            {"id": 1, "start": "2026-10-17T09:00:00Z", "duration": 3600, "project_id": 5},
            {"id": 2, "start": "2026-10-18T09:00:00Z", "duration": -1, "pid": 6},
            {"id": 3, "start": "2026-10-18T10:00:00Z", "duration": 60, "project_name": "Given"},
        ]
    )

    entries = await _client(handler).fetch_recent_entries("tok", days=7, today=date(2026, 10, 18))

    assert [e.project_name for e in entries] == ["Client A", None, "Given"]
    assert entries[1].project_id == 6

    req = next(r for r in seen if r.url.path.endswith("/me/time_entries"))
    assert req.url.params["start_date"] == "2026-10-11"
    assert req.url.params["end_date"] == "2026-10-19"
    assert req.url.params["meta"] == "true"
    expected = base64.b64encode(b"tok:api_token").decode()
    assert req.headers["Authorization"] == f"Basic {expected}"


@pytest.mark.asyncio
async def test_items_envelope_is_accepted() -> None:
    _, handler = _router({"items": [{"id": 9, "start": "2026-10-18T09:00:00Z", "duration": 30}]})
    entries = await _client(handler).fetch_time_entries("t", date(2026, 10, 1), date(2026, 10, 2))
    assert [e.id for e in entries] == [9]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "kind"),
    [(401, "auth"), (403, "auth"), (402, "rate_limited"), (429, "rate_limited"), (502, "http")],
)
async def test_http_errors_are_classified(status: int, kind: str) -> None:
    client = _client(lambda request: httpx.Response(status))
    with pytest.raises(FetchError) as exc_info:
        await client.fetch_time_entries("t", date(2026, 10, 1), date(2026, 10, 2))
    assert exc_info.value.kind == kind
    assert exc_info.value.category == FetchCategory.TIME_ENTRIES.value


@pytest.mark.asyncio
async def test_unexpected_payload_is_parse_error() -> None:
    _, handler = _router({"data": []})
    with pytest.raises(FetchError) as exc_info:
        await _client(handler).fetch_time_entries("t", date(2026, 10, 1), date(2026, 10, 2))
    assert exc_info.value.kind == "parse"


@pytest.mark.asyncio
async def test_fetchers_expose_time_entries_category() -> None:
    _, handler = _router([])
    fetchers = _client(handler).fetchers("t", days=3, today=date(2026, 10, 18))
    assert list(fetchers) == [FetchCategory.TIME_ENTRIES]
    assert await fetchers[FetchCategory.TIME_ENTRIES]() == []
