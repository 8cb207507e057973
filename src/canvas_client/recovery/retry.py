"""
Backoff policies for transient failures.

The scheduler does not loop inside a policy; it asks the policy whether a
failed call may be attempted again and how long to hold it back, then
requeues the call at the front of its admission queue when the delay expires.
"""

import random
from abc import ABC, abstractmethod
from typing import Optional

from ..runtime.errors import CanvasHTTPError, NetworkError


class RetryPolicy(ABC):
    """
    Abstract base class for retry policies.

    Defines the attempt budget and the delay schedule for transient
    failures (connection errors, timeouts and 5xx responses).
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        jitter: bool = True,
        jitter_factor: float = 0.1
    ):
        """
        Initialize retry policy.

        Args:
            max_attempts: Maximum number of attempts, the first one included
            base_delay: Base delay between attempts in seconds
            max_delay: Maximum delay between attempts in seconds
            jitter: Whether to add jitter to delays
            jitter_factor: Jitter factor (0.0 to 1.0)
        """
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self.jitter_factor = jitter_factor

    @abstractmethod
    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay after the given attempt.

        Args:
            attempt: Attempt number that just failed (1-based)

        Returns:
            Delay in seconds
        """

    def should_retry(self, attempt: int, error: Optional[Exception] = None) -> bool:
        """
        Determine if a failed call may be attempted again.

        Args:
            attempt: Attempt number that just failed
            error: What went wrong, if known

        Returns:
            True if another attempt is allowed
        """
        if attempt >= self.max_attempts:
            return False
        if isinstance(error, CanvasHTTPError):
            return error.status >= 500
        if error is not None and not isinstance(error, NetworkError):
            return False
        return True

    def add_jitter(self, delay: float) -> float:
        """Add jitter to delay if enabled."""
        if not self.jitter:
            return delay

        jitter_amount = delay * self.jitter_factor * (random.random() - 0.5)
        return max(0, delay + jitter_amount)

    def next_delay(self, attempt: int) -> float:
        """Capped, jittered delay to wait before the next attempt."""
        delay = min(self.calculate_delay(attempt), self.max_delay)
        return self.add_jitter(delay)


class ExponentialBackoff(RetryPolicy):
    """
    Exponential backoff retry policy.

    Delay increases exponentially with each attempt: base_delay * (factor ^ (attempt - 1))
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        factor: float = 2.0,
        jitter: bool = True,
        jitter_factor: float = 0.1
    ):
        super().__init__(max_attempts, base_delay, max_delay, jitter, jitter_factor)
        self.factor = factor

    def calculate_delay(self, attempt: int) -> float:
        """Calculate exponential backoff delay."""
        delay = self.base_delay * (self.factor ** (attempt - 1))
        return min(delay, self.max_delay)


class FixedBackoff(RetryPolicy):
    """Uses constant delay between all attempts."""

    def __init__(
        self,
        max_attempts: int = 3,
        delay: float = 1.0,
        jitter: bool = False,
        jitter_factor: float = 0.1
    ):
        super().__init__(max_attempts, delay, delay, jitter, jitter_factor)

    def calculate_delay(self, attempt: int) -> float:
        """Calculate fixed delay."""
        return self.base_delay


def create_network_retry_policy(max_attempts: int = 3, base_delay: float = 1.0) -> RetryPolicy:
    """Create the default policy used for connection failures and 5xx responses."""
    return ExponentialBackoff(
        max_attempts=max_attempts,
        base_delay=base_delay,
        max_delay=30.0,
        factor=2.0,
        jitter=True
    )
