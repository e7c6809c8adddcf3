"""Web search tool.

Queries a configurable JSON search endpoint and hands the results back
to the model.  Failures are reported as an ``ok=False`` outcome and are
never retried; whether to try again is the model's call on its next
turn.
"""

from __future__ import annotations

import json
import logging

import httpx

from toolstream.context import ToolContext
from toolstream.errors import ToolArgumentError
from toolstream.tools import ToolOutcome, tool

logger = logging.getLogger(__name__)

MAX_RESULTS = 5
SEARCH_KEY_HEADER = "X-Search-Api-Key"
UNTITLED = "Untitled result"
NO_RESULTS = "No results found"


def build_search_url(endpoint: str, query: str) -> httpx.URL:
    url = httpx.URL(endpoint).copy_set_param("q", query)
    if "max_results" not in url.params:
        url = url.copy_set_param("max_results", str(MAX_RESULTS))
    return url


def normalize_result(item: dict) -> dict[str, str]:
    """Map the field names different search backends use onto one shape."""
    return {
        "title": item.get("title") or item.get("name") or UNTITLED,
        "link": item.get("link") or item.get("url") or "",
        "snippet": (
            item.get("body") or item.get("description") or item.get("snippet") or ""
        ),
    }


def format_results(items: list[dict]) -> str:
    blocks = []
    for i, item in enumerate(items, 1):
        r = normalize_result(item)
        blocks.append(f"{i}. {r['title']}\n{r['link']}\n{r['snippet']}")
    return "\n\n".join(blocks) or NO_RESULTS


def _extract_items(data) -> list[dict]:
    if not isinstance(data, dict):
        return []
    items = data.get("results") or data.get("data") or []
    if not isinstance(items, list):
        return []
    return [item for item in items if isinstance(item, dict)][:MAX_RESULTS]


def _failure(message: str) -> ToolOutcome:
    return ToolOutcome(ok=False, summary=f"Search failed: {message}", raw=message)


@tool
async def search_web(context: ToolContext, query: str) -> ToolOutcome:
    """Search the web and return the top results.

    Args:
        context: Injected runtime context.
        query: The search query.
    """
    if not isinstance(query, str) or not query.strip():
        raise ToolArgumentError("search query is empty")

    endpoint = context.config.search_endpoint
    if not endpoint:
        return _failure("no search endpoint configured")

    headers = {}
    if context.config.search_key:
        headers[SEARCH_KEY_HEADER] = context.config.search_key

    try:
        url = build_search_url(endpoint, query)
        response = await context.http_client.get(
            url, headers=headers, timeout=context.config.search_timeout,
        )
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        status = e.response.status_code
        return _failure(f"{status} {e.response.reason_phrase}".strip())
    except httpx.HTTPError as e:
        return _failure(str(e) or type(e).__name__)
    except (httpx.InvalidURL, ValueError) as e:
        # Covers malformed endpoints and non-JSON bodies.
        return _failure(str(e))

    items = _extract_items(data)
    logger.info(f"Search for {query!r} returned {len(items)} results")
    return ToolOutcome(
        ok=True,
        summary=format_results(items),
        raw=json.dumps(items, indent=2, ensure_ascii=False),
    )
