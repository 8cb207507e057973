"""
Request-scheduling core for the Canvas client.

Provides the quota monitor, the rate-aware request scheduler and the
pagination aggregator that sits on top of it.
"""

from .call import PendingCall, ApiResponse, PageCursor, DispatchRecord
from .quota import QuotaMonitor
from .scheduler import RequestScheduler
from .pagination import Paginator, PageOptions

__all__ = [
    "PendingCall",
    "ApiResponse",
    "PageCursor",
    "DispatchRecord",
    "QuotaMonitor",
    "RequestScheduler",
    "Paginator",
    "PageOptions"
]
