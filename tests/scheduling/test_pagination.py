"""
Tests for the pagination aggregator.
"""

import asyncio
import pytest
from pydantic import ValidationError

from canvas_client.recovery.retry import FixedBackoff
from canvas_client.runtime.errors import CanvasHTTPError
from canvas_client.scheduling.call import ApiResponse, PendingCall
from canvas_client.scheduling.pagination import (
    PageOptions, Paginator, follow_up_call, page_items, split_link
)
from canvas_client.scheduling.quota import QuotaMonitor
from canvas_client.scheduling.scheduler import RequestScheduler
from helpers import FakeTransport, BASE_URL, ok, error


ASSIGNMENTS = f"{BASE_URL}/courses/1/assignments"


def make_paginator(transport, quota=None):
    quota = quota or QuotaMonitor(buffer=300, check_status_interval=0.01)
    scheduler = RequestScheduler(
        transport, quota, min_send_interval=0.0,
        retry_policy=FixedBackoff(max_attempts=2, delay=0.001)
    )
    return Paginator(scheduler)


def page_router(pages):
    """Answer each page request from its ``page`` query parameter."""
    def respond(call):
        number = int((call.query or {}).get("page", 1))
        next_url = None
        if number < len(pages):
            next_url = f"{ASSIGNMENTS}?page={number + 1}&per_page=2"
        return ok(pages[number - 1], remaining=800, next_url=next_url)
    return respond


class TestHelpers:
    """Test link handling and item extraction."""

    def test_split_link(self):
        base, query = split_link(f"{ASSIGNMENTS}?page=3&per_page=50&include[]=a&include[]=b")
        assert base == ASSIGNMENTS
        assert query == {"page": "3", "per_page": "50", "include[]": ["a", "b"]}

    def test_follow_up_keeps_original_query_except_cursor(self):
        initial = PendingCall(
            "GET", ASSIGNMENTS,
            query={"per_page": 2, "search_term": "essay", "page": "1"},
            items_key="assignments"
        )
        call = follow_up_call(initial, f"{ASSIGNMENTS}?page=bookmark:abc")

        assert call.method == "GET"
        assert call.url == ASSIGNMENTS
        assert call.query == {"per_page": 2, "search_term": "essay", "page": "bookmark:abc"}
        assert call.items_key == "assignments"

    def test_page_items(self):
        assert page_items(ApiResponse(200, [1, 2])) == [1, 2]
        assert page_items(ApiResponse(200, None)) == []
        assert page_items(ApiResponse(200, {"quiz_submissions": [1]}), "quiz_submissions") == [1]
        assert page_items(ApiResponse(200, {"id": 1})) == [{"id": 1}]

    def test_page_options(self):
        assert PageOptions().to_dict() == {"per_page": 100}
        assert PageOptions(per_page=10, params={"include[]": ["items"]}).to_dict() == {
            "include[]": ["items"], "per_page": 10
        }
        with pytest.raises(ValidationError):
            PageOptions(per_page=0)
        with pytest.raises(ValidationError):
            PageOptions(per_page=101)


class TestFetchAll:
    """Test the page-following loop."""

    @pytest.mark.asyncio
    async def test_concatenates_pages_in_order(self):
        pages = [[{"id": 1}, {"id": 2}], [{"id": 3}, {"id": 4}], [{"id": 5}]]
        transport = FakeTransport().add("GET", ASSIGNMENTS, page_router(pages))
        paginator = make_paginator(transport)

        items = await paginator.fetch_all(PendingCall("GET", ASSIGNMENTS, query={"per_page": 2}))

        assert [item["id"] for item in items] == [1, 2, 3, 4, 5]
        assert len(transport.calls) == 3
        assert [c.query.get("page") for c in transport.calls] == [None, "2", "3"]
        await paginator.scheduler.close()

    @pytest.mark.asyncio
    async def test_single_page(self):
        transport = FakeTransport().add("GET", ASSIGNMENTS, ok([{"id": 1}]))
        paginator = make_paginator(transport)

        items = await paginator.fetch_all(PendingCall("GET", ASSIGNMENTS))

        assert items == [{"id": 1}]
        assert len(transport.calls) == 1
        await paginator.scheduler.close()

    @pytest.mark.asyncio
    async def test_empty_list(self):
        transport = FakeTransport().add("GET", ASSIGNMENTS, ok([]))
        paginator = make_paginator(transport)

        assert await paginator.fetch_all(PendingCall("GET", ASSIGNMENTS)) == []
        await paginator.scheduler.close()

    @pytest.mark.asyncio
    async def test_pages_are_sequential(self):
        pages = [[{"id": 1}], [{"id": 2}], [{"id": 3}]]
        transport = FakeTransport(delay=0.01).add("GET", ASSIGNMENTS, page_router(pages))
        paginator = make_paginator(transport)

        await paginator.fetch_all(PendingCall("GET", ASSIGNMENTS))

        assert transport.max_in_flight == 1
        await paginator.scheduler.close()

    @pytest.mark.asyncio
    async def test_failed_page_propagates(self):
        def respond(call):
            if (call.query or {}).get("page") == "2":
                return error(404, {"errors": "gone"})
            return ok([{"id": 1}], next_url=f"{ASSIGNMENTS}?page=2")

        transport = FakeTransport().add("GET", ASSIGNMENTS, respond)
        paginator = make_paginator(transport)

        with pytest.raises(CanvasHTTPError) as exc_info:
            await paginator.fetch_all(PendingCall("GET", ASSIGNMENTS))
        assert exc_info.value.status == 404
        await paginator.scheduler.close()

    @pytest.mark.asyncio
    async def test_follow_up_pages_respect_quota(self):
        responses = iter([
            ok([{"id": 1}], remaining=100, next_url=f"{ASSIGNMENTS}?page=2"),
            ok([{"id": 2}], remaining=900),
        ])
        transport = FakeTransport().add("GET", ASSIGNMENTS, lambda call: next(responses))
        quota = QuotaMonitor(buffer=300, check_status_interval=0.01)
        paginator = make_paginator(transport, quota)

        task = asyncio.create_task(paginator.fetch_all(PendingCall("GET", ASSIGNMENTS)))
        await asyncio.sleep(0.05)
        assert len(transport.calls) == 1

        quota.observe(1000)
        items = await asyncio.wait_for(task, timeout=0.5)
        assert [item["id"] for item in items] == [1, 2]
        await paginator.scheduler.close()
