"""
Error recovery components for the Canvas client.

Provides the backoff policies the request scheduler applies to transient
network failures.
"""

from .retry import RetryPolicy, ExponentialBackoff, FixedBackoff, create_network_retry_policy

__all__ = [
    "RetryPolicy",
    "ExponentialBackoff",
    "FixedBackoff",
    "create_network_retry_policy"
]
