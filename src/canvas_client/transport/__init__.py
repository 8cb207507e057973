"""
Transport layer for the Canvas client.
"""

from .http import HttpTransport, encode_query, parse_quota, QUOTA_HEADER

__all__ = [
    "HttpTransport",
    "encode_query",
    "parse_quota",
    "QUOTA_HEADER"
]
