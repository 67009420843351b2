# src/phitodo/sync/http.py

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx

from ..core.errors import FetchError

logger = logging.getLogger(__name__)

# (status, headers) -> (kind, message) for a non-2xx response
StatusClassifier = Callable[[int, httpx.Headers], tuple[str, str]]


def make_timeout(seconds: float) -> httpx.Timeout:
    connect = min(5.0, float(seconds))
    return httpx.Timeout(connect=connect, read=float(seconds), write=10.0, pool=connect)


async def _get(
    client: httpx.AsyncClient,
    url: str,
    *,
    category: str,
    classify: StatusClassifier,
    params: dict[str, Any] | None,
) -> httpx.Response:
    try:
        response = await client.get(url, params=params)
    except httpx.TimeoutException as e:
        raise FetchError(category, f"request timed out ({e.__class__.__name__})", kind="network") from e
    except httpx.TransportError as e:
        raise FetchError(category, f"network error ({e.__class__.__name__})", kind="network") from e

    if not response.is_success:
        kind, message = classify(response.status_code, response.headers)
        raise FetchError(category, message, kind=kind)
    return response


def _decode(response: httpx.Response, category: str) -> Any:
    try:
        return response.json()
    except ValueError as e:
        raise FetchError(category, "response is not valid JSON", kind="parse") from e


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    category: str,
    classify: StatusClassifier,
    params: dict[str, Any] | None = None,
) -> Any:
    """
    GET url and decode JSON, translating every failure into FetchError(category).

    Timeouts and connection problems -> kind=network; non-2xx -> classify();
    undecodable body -> kind=parse.
    """
    response = await _get(client, url, category=category, classify=classify, params=params)
    return _decode(response, category)


async def get_json_pages(
    client: httpx.AsyncClient,
    url: str,
    *,
    category: str,
    classify: StatusClassifier,
    params: dict[str, Any] | None = None,
    max_pages: int = 10,
) -> list[Any]:
    """
    Like get_json, but follows `Link: <...>; rel="next"` and returns every page body.

    A result that still has a next page after `max_pages` is a parse error:
    callers must never see a silently truncated list.
    """
    pages: list[Any] = []
    next_url: str | None = url
    next_params = params
    while next_url is not None:
        if len(pages) >= max_pages:
            raise FetchError(category, f"result spans more than {max_pages} pages", kind="parse")
        response = await _get(client, next_url, category=category, classify=classify, params=next_params)
        pages.append(_decode(response, category))
        # The next link already carries the query string.
        next_url = response.links.get("next", {}).get("url")
        next_params = None
    logger.debug("%s: fetched %d page(s)", category, len(pages))
    return pages
