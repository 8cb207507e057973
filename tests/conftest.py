"""
Shared fixtures: a scripted transport and a client wired to it with
millisecond timings so throttling tests finish quickly.
"""

import pytest
import pytest_asyncio

from canvas_client import CanvasClient, ClientConfig
from helpers import FakeTransport, BASE_URL


@pytest.fixture
def transport():
    """Scripted transport with no routes."""
    return FakeTransport()


@pytest.fixture
def client_config():
    """Client configuration tuned for tests."""
    return ClientConfig(
        base_url=BASE_URL,
        token="test-token",
        rate_limit_buffer=300,
        call_limit=4,
        min_send_interval=0.0,
        check_status_interval=0.01,
        max_attempts=3,
        retry_delay=0.001,
        per_page=2
    )


@pytest_asyncio.fixture
async def client(client_config, transport):
    """Client using the scripted transport; closed after the test."""
    canvas = CanvasClient(client_config, transport=transport)
    yield canvas
    await canvas.close()
