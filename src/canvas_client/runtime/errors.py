"""
Canvas Client Error Model

This module provides the error handling framework for the Canvas access layer.
Scheduling and quota errors are recovered internally; everything that reaches
a caller carries enough context (method, URL, status, body) to diagnose it.
"""

from __future__ import annotations
from typing import Optional, Dict, Any, List
from enum import IntEnum


class ErrorCode(IntEnum):
    """Error codes for the Canvas access layer."""

    # Success
    OK = 0

    # General errors (1-99)
    UNKNOWN = 1
    INTERNAL = 2
    CONFIGURATION = 3
    USAGE = 4

    # Network errors (200-299)
    NETWORK_ERROR = 200
    CONNECTION_FAILED = 201
    TIMEOUT = 202
    RATE_LIMITED = 203
    SERVICE_UNAVAILABLE = 204
    SCHEDULER_CLOSED = 205

    # HTTP errors (400-499)
    CLIENT_ERROR = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    SERVER_ERROR = 500

    # Resource tree errors (600-699)
    UPDATE_FAILED = 600


class CanvasError(Exception):
    """
    Base class for all Canvas client errors.

    Every failure the access layer surfaces derives from this class, so a
    caller can catch one type at the top of a cascade. ``code`` says which
    layer gave up (configuration, scheduler, transport, HTTP status or
    resource tree); ``details`` carries the call context (method, URL,
    status, attempts) that request-level subclasses fill in.
    """

    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN,
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        """
        Initialize a Canvas error.

        Args:
            message: Error message
            code: Error code
            details: Additional error details
            cause: Underlying exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        """String representation of the error."""
        parts = [f"[{self.code.name}] {self.message}"]
        if self.details:
            parts.append(f"Details: {self.details}")
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary representation."""
        result = {
            "code": self.code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ConfigurationError(CanvasError):
    """Missing or invalid client configuration."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.CONFIGURATION, details)


class UsageError(CanvasError):
    """The core was called in a way that can never succeed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.USAGE, details)


class RequestError(CanvasError):
    """Failure tied to a single HTTP call."""

    def __init__(self, message: str, method: str, url: str, code: ErrorCode = ErrorCode.UNKNOWN,
                 details: Optional[Dict[str, Any]] = None, cause: Optional[Exception] = None):
        details = {"method": method, "url": url, **(details or {})}
        super().__init__(message, code, details, cause)
        self.method = method
        self.url = url


class NetworkError(RequestError):
    """Connection-level failure that outlived its retries."""

    def __init__(self, message: str, method: str, url: str, attempts: int = 1,
                 cause: Optional[Exception] = None):
        super().__init__(message, method, url, ErrorCode.NETWORK_ERROR,
                         {"attempts": attempts}, cause)
        self.attempts = attempts


class QuotaExhaustedError(RequestError):
    """Call was throttled more times than the scheduler allows."""

    def __init__(self, method: str, url: str, retries: int):
        super().__init__(
            f"{method} {url} still throttled after {retries} quota retries",
            method, url, ErrorCode.RATE_LIMITED, {"retries": retries}
        )
        self.retries = retries


class CanvasHTTPError(RequestError):
    """Non-retryable HTTP status returned by the API."""

    def __init__(self, method: str, url: str, status: int, body: Any = None):
        if status == 401:
            code = ErrorCode.UNAUTHORIZED
        elif status == 403:
            code = ErrorCode.FORBIDDEN
        elif status == 404:
            code = ErrorCode.NOT_FOUND
        elif status >= 500:
            code = ErrorCode.SERVER_ERROR
        else:
            code = ErrorCode.CLIENT_ERROR
        super().__init__(f"{method} {url} failed with HTTP {status}: {body!r}",
                         method, url, code, {"status": status})
        self.status = status
        self.body = body


class SchedulerClosedError(CanvasError):
    """The scheduler was closed before the call resolved."""

    def __init__(self, message: str = "Request scheduler is closed"):
        super().__init__(message, ErrorCode.SCHEDULER_CLOSED)


class UpdateError(CanvasError):
    """
    One or more nodes in a cascade update failed.

    Nodes that saved successfully are clean; the ones listed here are still
    dirty, so calling ``update()`` again retries only the remainder.
    """

    def __init__(self, errors: List[Exception]):
        super().__init__(f"{len(errors)} update(s) failed", ErrorCode.UPDATE_FAILED,
                         {"errors": [str(e) for e in errors]})
        self.errors = errors


__all__ = [
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
