"""
HTTP transport for the Canvas REST API.

Sends one PendingCall over a shared aiohttp session and turns the reply into
an ApiResponse carrying the quota and next-page signals. Retrying and pacing
are the scheduler's job; this layer only reports what happened.
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from ..config import ClientConfig
from ..runtime.errors import NetworkError
from ..scheduling.call import ApiResponse, PendingCall


logger = logging.getLogger(__name__)


QUOTA_HEADER = "X-Rate-Limit-Remaining"


@dataclass
class TransportStats:
    """Counters for the transport."""
    created_at: float = field(default_factory=time.time)
    last_used: float = field(default_factory=time.time)
    request_count: int = 0
    error_count: int = 0

    @property
    def idle_time(self) -> float:
        """Get idle time in seconds."""
        return time.time() - self.last_used


def encode_query(query: Optional[Dict[str, Any]]) -> List[Tuple[str, str]]:
    """
    Flatten a query mapping into key/value pairs.

    List values repeat their key (``include[]=a&include[]=b``); booleans are
    sent the way Canvas expects them.
    """
    pairs: List[Tuple[str, str]] = []
    for key, value in (query or {}).items():
        values = value if isinstance(value, (list, tuple)) else [value]
        for item in values:
            if item is None:
                continue
            if isinstance(item, bool):
                item = "true" if item else "false"
            pairs.append((key, str(item)))
    return pairs


def parse_quota(headers) -> Optional[float]:
    """Read the remaining-quota header; absent or garbled values give None."""
    raw = headers.get(QUOTA_HEADER)
    if raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring unparsable {QUOTA_HEADER} header: {raw!r}")
        return None


class HttpTransport:
    """
    aiohttp-backed transport with a single lazily created session.

    Features:
    - Bearer-token authorization on every request
    - Query strings for GET, JSON bodies for POST/PUT/DELETE
    - Quota header and Link-header pagination extraction
    - Connection-level failures surfaced as NetworkError
    """

    def __init__(self, config: ClientConfig, session: Optional[aiohttp.ClientSession] = None):
        """
        Initialize transport.

        Args:
            config: Client configuration
            session: Optional externally owned aiohttp session
        """
        self.config = config
        self._session = session
        self._owns_session = session is None
        self.stats = TransportStats()
        self.closed = False

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": self.config.user_agent,
        }
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=self.config.call_limit)
            timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                headers=self._headers()
            )
            self._owns_session = True
            logger.debug("Created HTTP session")
        return self._session

    async def send(self, call: PendingCall) -> ApiResponse:
        """
        Perform one HTTP request.

        Args:
            call: Call to send

        Returns:
            Parsed response, whatever its status

        Raises:
            NetworkError: On connection failure or timeout
        """
        session = self._get_session()
        kwargs: Dict[str, Any] = {}
        if call.method == "GET":
            if call.query:
                kwargs["params"] = encode_query(call.query)
        elif call.body is not None:
            kwargs["json"] = call.body

        self.stats.last_used = time.time()
        self.stats.request_count += 1

        try:
            async with session.request(call.method, call.url, **kwargs) as response:
                text = await response.text()
                next_link = response.links.get("next")
                return ApiResponse(
                    status=response.status,
                    data=self._decode(text),
                    headers=dict(response.headers),
                    quota_remaining=parse_quota(response.headers),
                    next_url=str(next_link["url"]) if next_link else None
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.stats.error_count += 1
            raise NetworkError(
                f"{call.method} {call.url} failed: {e or type(e).__name__}",
                call.method, call.url, attempts=call.attempts, cause=e
            )

    @staticmethod
    def _decode(text: str) -> Any:
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text

    async def close(self):
        """Close the session if this transport created it."""
        if self.closed:
            return

        self.closed = True
        if self._session is not None and self._owns_session:
            await self._session.close()
            logger.debug("Closed HTTP session")

    def get_stats(self) -> Dict[str, Any]:
        """Get transport statistics."""
        return {
            "requests": self.stats.request_count,
            "errors": self.stats.error_count,
            "idle_seconds": self.stats.idle_time,
            "error_rate": self.stats.error_count / max(self.stats.request_count, 1),
            "closed": self.closed
        }
