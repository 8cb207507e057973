"""
Canvas API client.

Wires the transport, quota monitor, request scheduler and paginator
together and owns the roots of the resource tree.
"""

from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from .config import ClientConfig
from .recovery.retry import create_network_retry_policy
from .resources.collection import ResourceCollection
from .resources.kinds import get_kind
from .resources.node import ResourceNode
from .scheduling.call import ApiResponse, PendingCall
from .scheduling.pagination import Paginator
from .scheduling.quota import QuotaMonitor
from .scheduling.scheduler import DispatchHook, RequestScheduler
from .transport.http import HttpTransport
from .utils.callbacks import with_callback


logger = logging.getLogger(__name__)


STATUS_PATH = "users/self"


class CanvasClient:
    """
    Quota-aware client for a Canvas REST API instance.

    Features:
    - Self-throttling against the server-reported quota
    - Bounded concurrency with staggered dispatch
    - Transparent Link-header pagination
    - Dirty-tracked resource tree with cascading update

    Example:
        ```python
        async with CanvasClient(subdomain="school", token="...") as canvas:
            course = await canvas.get_course(42).get_complete()
            for assignment in course.assignments:
                assignment.title = assignment.title.strip()
            await course.update()
        ```
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        *,
        transport=None,
        **overrides
    ):
        """
        Initialize the client.

        Args:
            config: Client configuration; built from ``CANVAS_*`` environment
                variables when omitted
            transport: Object with ``async send(call) -> ApiResponse``;
                defaults to an aiohttp transport
            **overrides: ClientConfig fields that replace configured values
        """
        if config is None:
            config = ClientConfig.from_env(**overrides)
        elif overrides:
            config = config.with_overrides(**overrides)
        self.config = config

        package_logger = logging.getLogger("canvas_client")
        if self.config.debug:
            package_logger.setLevel(logging.DEBUG)

        self.base_url = self.config.resolved_base_url()
        self.transport = transport or HttpTransport(self.config)
        self.quota = QuotaMonitor(
            buffer=self.config.rate_limit_buffer,
            check_status_interval=self.config.check_status_interval,
            probe=self._probe_status
        )
        self.scheduler = RequestScheduler(
            self.transport,
            self.quota,
            call_limit=self.config.call_limit,
            min_send_interval=self.config.min_send_interval,
            retry_policy=create_network_retry_policy(
                self.config.max_attempts, self.config.retry_delay
            ),
            max_quota_retries=self.config.max_quota_retries
        )
        self.paginator = Paginator(self.scheduler)

        self.courses = ResourceCollection(get_kind("course"), self, "courses")
        self.users = ResourceCollection(get_kind("user"), self, "users")

        logger.info(f"Canvas client ready for {self.base_url}")

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def close(self):
        """Fail pending calls and release the HTTP session."""
        await self.scheduler.close()
        close = getattr(self.transport, "close", None)
        if close is not None:
            await close()

    # The root of the tree answers the same navigation questions a node does.
    @property
    def client(self) -> "CanvasClient":
        return self

    @property
    def url(self) -> str:
        return self.base_url

    @property
    def on_dispatch(self) -> Optional[DispatchHook]:
        """Debug hook called once per dispatched call with a DispatchRecord."""
        return self.scheduler.on_dispatch

    @on_dispatch.setter
    def on_dispatch(self, hook: Optional[DispatchHook]) -> None:
        self.scheduler.on_dispatch = hook

    def resolve_url(self, path: str) -> str:
        """Absolute URL for an API path such as ``courses/1/pages``."""
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def _probe_status(self) -> None:
        await self.scheduler.probe_status(self.resolve_url(STATUS_PATH))

    # ------------------------------------------------------------------
    # Core surface
    # ------------------------------------------------------------------

    @with_callback
    async def submit(self, call: PendingCall) -> ApiResponse:
        """Dispatch a single call through the scheduler."""
        return await self.scheduler.submit(call)

    @with_callback
    async def fetch_all(self, call: PendingCall) -> List[Any]:
        """Fetch every page of a list call."""
        return await self.paginator.fetch_all(call)

    @with_callback
    async def request(
        self,
        method: str,
        path: str,
        query: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Send one request and return the decoded body.

        Args:
            method: HTTP method
            path: API path relative to the base URL, or an absolute URL
            query: Query parameters (GET)
            body: JSON body (POST/PUT/DELETE)

        Returns:
            Decoded response body
        """
        response = await self.scheduler.submit(
            PendingCall(method, self.resolve_url(path), query=query, body=body)
        )
        return response.data

    def get_course(self, course_id: Any) -> ResourceNode:
        """Unfetched course node; call ``get()`` or ``get_complete()`` on it."""
        return self.courses.node(course_id)

    def get_user(self, user_id: Any = "self") -> ResourceNode:
        """Unfetched user node."""
        return self.users.node(user_id)

    def get_stats(self) -> Dict[str, Any]:
        """Scheduler and transport statistics."""
        stats = {"scheduler": self.scheduler.get_stats()}
        transport_stats = getattr(self.transport, "get_stats", None)
        if transport_stats is not None:
            stats["transport"] = transport_stats()
        return stats
