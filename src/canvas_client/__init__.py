"""
Canvas Python Client

This package provides a quota-aware access layer for the Canvas LMS REST API:
a self-throttling request scheduler, Link-header pagination and a
dirty-tracked resource tree whose ``update()`` pushes only what changed.
"""

from .client import CanvasClient
from .config import ClientConfig
from .runtime.errors import *

# Request-scheduling core
from .scheduling import (
    PendingCall, ApiResponse, PageCursor, DispatchRecord,
    QuotaMonitor, RequestScheduler, Paginator, PageOptions
)

# Transport
from .transport import HttpTransport

# Error recovery
from .recovery import RetryPolicy, ExponentialBackoff, FixedBackoff

# Resource tree
from .resources import (
    ResourceKind, KINDS, get_kind, register_kind,
    ResourceNode, ResourceCollection
)

__version__ = "1.0.0"
__all__ = [
    # Client
    "CanvasClient",
    "ClientConfig",

    # Scheduling core
    "PendingCall",
    "ApiResponse",
    "PageCursor",
    "DispatchRecord",
    "QuotaMonitor",
    "RequestScheduler",
    "Paginator",
    "PageOptions",

    # Transport
    "HttpTransport",

    # Error recovery
    "RetryPolicy",
    "ExponentialBackoff",
    "FixedBackoff",

    # Resource tree
    "ResourceKind",
    "KINDS",
    "get_kind",
    "register_kind",
    "ResourceNode",
    "ResourceCollection",

    # Errors
    "ErrorCode",
    "CanvasError",
    "ConfigurationError",
    "UsageError",
    "RequestError",
    "NetworkError",
    "QuotaExhaustedError",
    "CanvasHTTPError",
    "SchedulerClosedError",
    "UpdateError",
]
