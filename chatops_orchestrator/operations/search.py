"""
``search`` operation backed by a SearXNG instance.

``requests`` is blocking, so the handler hands the call to a worker thread
and the event loop keeps serving other messages. Search is a
single-execution operation by default.
"""

import asyncio
import logging
from typing import Optional

import requests

from ..config import config
from .context import OperationContext
from .registry import OperationRegistry

logger = logging.getLogger(__name__)

DEFAULT_RESULTS = 5
MAX_RESULTS = 10


def search(
    query: str,
    categories: Optional[str] = None,
    num_results: int = DEFAULT_RESULTS,
) -> dict:
    """
    Query SearXNG and return the top ``num_results`` hits.

    Each hit is trimmed to title, url and content. Failures (network errors,
    HTTP errors, a non-JSON body) come back as an ``error`` field with an
    empty ``results`` list instead of raising.
    """
    if not (query or "").strip():
        return {
            "query": query,
            "error": 'Search query is empty. Provide arguments like {"query": "your search terms"}',
            "results": [],
        }

    searxng = config.tools.searxng
    params = {"q": query, "format": "json"}
    if categories:
        params["categories"] = categories

    try:
        response = requests.get(searxng.url, params=params, timeout=searxng.timeout)
        response.raise_for_status()
        hits = response.json().get("results", [])
    except (requests.exceptions.RequestException, ValueError) as e:
        logger.warning(f"SearXNG query {query!r} failed: {e}")
        return {"query": query, "error": str(e), "results": []}

    results = [
        {key: hit.get(key, "") for key in ("title", "url", "content")}
        for hit in hits[:num_results]
    ]
    logger.debug(f"SearXNG returned {len(hits)} hits for {query!r}, kept {len(results)}")
    return {
        "query": query,
        "summary": f"{len(results)} result(s) for '{query}'",
        "results": results,
    }


def _result_count(value) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        return DEFAULT_RESULTS
    return max(1, min(count, MAX_RESULTS))


async def _handle_search(args: dict, context: OperationContext) -> dict:
    return await asyncio.to_thread(
        search,
        str(args.get("query", "")),
        args.get("categories"),
        _result_count(args.get("num_results", DEFAULT_RESULTS)),
    )


OperationRegistry.register(
    name="search",
    description="Search the web for current information and news",
    parameters={
        "query": "what to look up",
        "categories": "optional SearXNG category: general, images or news",
        "num_results": {
            "type": "integer",
            "description": f"how many results to return (default {DEFAULT_RESULTS}, at most {MAX_RESULTS})",
        },
    },
    handler=_handle_search,
    required=["query"],
)
