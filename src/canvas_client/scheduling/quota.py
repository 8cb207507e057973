"""
Quota tracking for self-throttling.

The server reports how much of its call budget is left on every response.
The monitor keeps the most recent figure, lowers it optimistically as calls
go out, and holds new dispatches back while it sits below the buffer.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional


logger = logging.getLogger(__name__)


StatusProbe = Callable[[], Awaitable[None]]


class QuotaMonitor:
    """
    Shared remaining-quota counter with a floor-only gate.

    ``remaining`` is ``None`` until the first observation arrives, and calls
    are allowed through until then. After that, dispatch is gated on
    ``remaining >= buffer``. All mutation happens on the event loop thread
    without awaiting, so ``consume`` and ``observe`` never interleave.
    """

    def __init__(
        self,
        buffer: float = 300.0,
        check_status_interval: float = 0.5,
        probe: Optional[StatusProbe] = None
    ):
        """
        Initialize quota monitor.

        Args:
            buffer: Minimum remaining quota required to dispatch
            check_status_interval: Seconds between re-checks while blocked
            probe: Coroutine that fetches a fresh quota reading from the
                server; invoked when no observation arrived for a whole
                interval while blocked
        """
        self.buffer = buffer
        self.check_status_interval = check_status_interval
        self.probe = probe
        self.remaining: Optional[float] = None
        self._observations = 0
        self._probing = False
        self._waiting = False

    @property
    def may_proceed(self) -> bool:
        """True when a new call may be dispatched."""
        return self.remaining is None or self.remaining >= self.buffer

    @property
    def observations(self) -> int:
        """Number of server readings received so far."""
        return self._observations

    def consume(self, cost: float = 1.0) -> None:
        """Optimistically charge a call against the local estimate."""
        if self.remaining is not None:
            self.remaining -= cost

    def observe(self, server_remaining: float) -> None:
        """Overwrite the estimate with the server's authoritative figure."""
        self.remaining = float(server_remaining)
        self._observations += 1
        logger.debug(f"Quota observed: {self.remaining:.1f} remaining")

    async def await_capacity(self) -> None:
        """Suspend until ``remaining >= buffer``, re-checking every interval."""
        if self.may_proceed:
            return

        self._waiting = True
        logger.info(
            f"Quota low ({self.remaining:.1f} < {self.buffer:.1f}); "
            f"pausing dispatch"
        )
        try:
            while not self.may_proceed:
                seen = self._observations
                await asyncio.sleep(self.check_status_interval)
                if not self.may_proceed and self._observations == seen:
                    await self._run_probe()
        finally:
            self._waiting = False

        logger.info(f"Quota recovered ({self.remaining:.1f}); resuming dispatch")

    @property
    def is_waiting(self) -> bool:
        return self._waiting

    async def _run_probe(self) -> None:
        if self.probe is None or self._probing:
            return

        self._probing = True
        try:
            await self.probe()
        except Exception as e:
            logger.warning(f"Quota status probe failed: {e}")
        finally:
            self._probing = False
