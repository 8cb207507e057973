"""
Value types shared by the transport, scheduler and paginator.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


THROTTLE_MARKER = "rate limit exceeded"


@dataclass
class PendingCall:
    """A single logical HTTP call waiting for (or undergoing) dispatch."""
    method: str
    url: str
    query: Optional[Dict[str, Any]] = None
    body: Optional[Dict[str, Any]] = None
    items_key: Optional[str] = None
    attempts: int = 0
    quota_retries: int = 0
    future: Optional[asyncio.Future] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        self.method = self.method.upper()

    @property
    def payload(self) -> Optional[Dict[str, Any]]:
        """Query for GET, body for everything else."""
        return self.query if self.method == "GET" else self.body


@dataclass
class PageCursor:
    """Pointer to the next page of a list response; ``None`` marks the last page."""
    next_url: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.next_url is None


@dataclass
class ApiResponse:
    """Parsed HTTP response plus the quota and pagination signals."""
    status: int
    data: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    quota_remaining: Optional[float] = None
    next_url: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_throttled(self) -> bool:
        """429, or Canvas' 403 "Rate Limit Exceeded"."""
        if self.status == 429:
            return True
        return self.status == 403 and THROTTLE_MARKER in str(self.data).lower()

    @property
    def is_server_error(self) -> bool:
        return self.status >= 500

    @property
    def cursor(self) -> PageCursor:
        return PageCursor(self.next_url)


@dataclass
class DispatchRecord:
    """What the debug hook sees for every dispatched call."""
    method: str
    url: str
    body: Optional[Dict[str, Any]] = None
    attempt: int = 1
