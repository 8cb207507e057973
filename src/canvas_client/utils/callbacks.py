"""
Completion-callback support for coroutine operations.
"""

import functools
from typing import Any, Callable, Optional


Callback = Callable[[Optional[BaseException], Any], Any]


def with_callback(func):
    """
    Let an async method take an optional ``callback=`` keyword.

    The callback is called once as ``callback(error, result)``. The awaitable
    still returns the result or raises the error, so a failure is never
    dropped when the caller ignores one of the two channels.
    """
    @functools.wraps(func)
    async def wrapper(*args, callback: Optional[Callback] = None, **kwargs):
        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            if callback is not None:
                callback(e, None)
            raise
        if callback is not None:
            callback(None, result)
        return result

    return wrapper
