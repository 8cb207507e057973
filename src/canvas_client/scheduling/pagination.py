"""
Pagination aggregator.

Follows the server's next-page links one page at a time, concatenating the
items of every page into one list. Each page goes through the scheduler like
any other call, so pagination never bypasses quota gating.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlsplit, urlunsplit

from pydantic import BaseModel, Field

from .call import ApiResponse, PendingCall
from .scheduler import RequestScheduler


logger = logging.getLogger(__name__)


class PageOptions(BaseModel):
    """
    Query options applied to list fetches.

    Canvas caps ``per_page`` at 100; extra parameters (``include[]``,
    ``search_term`` ...) are passed through unchanged.
    """
    per_page: int = Field(default=100, ge=1, le=100, description="Items per page")
    params: Dict[str, Any] = Field(default_factory=dict, description="Extra query parameters")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to query parameters."""
        result: Dict[str, Any] = dict(self.params)
        result["per_page"] = self.per_page
        return result


def split_link(url: str):
    """Split a link into its base URL and query parameters."""
    parts = urlsplit(url)
    base = urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
    query: Dict[str, Any] = {}
    for key, values in parse_qs(parts.query, keep_blank_values=True).items():
        query[key] = values[0] if len(values) == 1 else values
    return base, query


def follow_up_call(initial: PendingCall, next_url: str) -> PendingCall:
    """
    Build the call for the next page.

    The original query is preserved; parameters carried by the link (the
    page cursor among them) replace same-named originals.
    """
    base, link_query = split_link(next_url)
    query = dict(initial.query or {})
    query.update(link_query)
    return PendingCall("GET", base, query=query, items_key=initial.items_key)


def page_items(response: ApiResponse, items_key: Optional[str] = None) -> List[Any]:
    """Extract the items carried by one page."""
    data = response.data
    if data is None:
        return []
    if isinstance(data, list):
        return data
    if items_key is not None and isinstance(data, dict):
        return list(data.get(items_key) or [])
    return [data]


class Paginator:
    """Runs list fetches to exhaustion through a scheduler."""

    def __init__(self, scheduler: RequestScheduler):
        self.scheduler = scheduler

    async def fetch_all(self, initial: PendingCall) -> List[Any]:
        """
        Fetch every page of a list request.

        Page N+1 is only requested after page N resolves, since its cursor
        comes from page N's response.

        Args:
            initial: Call for the first page

        Returns:
            Items of all pages, in page order
        """
        items: List[Any] = []
        call: Optional[PendingCall] = initial
        pages = 0

        while call is not None:
            response = await self.scheduler.submit(call)
            pages += 1
            items.extend(page_items(response, initial.items_key))

            cursor = response.cursor
            call = None if cursor.is_terminal else follow_up_call(initial, cursor.next_url)

        logger.debug(f"Fetched {len(items)} item(s) in {pages} page(s) from {initial.url}")
        return items
