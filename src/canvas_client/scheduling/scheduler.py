"""
Rate-aware request scheduler.

One dispatcher task admits queued calls into a bounded in-flight set. Before
each admission it waits for quota capacity and for the stagger interval
since the previous admission. Responses feed the quota monitor; throttled
and transiently failed calls go back to the front of the queue.
"""

import asyncio
import collections
import logging
from typing import Any, Callable, Deque, Dict, Optional, Tuple

from ..recovery.retry import RetryPolicy, create_network_retry_policy
from ..runtime.errors import (
    CanvasHTTPError, NetworkError, QuotaExhaustedError, SchedulerClosedError
)
from .call import ApiResponse, DispatchRecord, PendingCall
from .quota import QuotaMonitor


logger = logging.getLogger(__name__)


DispatchHook = Callable[[DispatchRecord], Any]


class RequestScheduler:
    """
    Bounded-concurrency, quota-gated dispatcher for HTTP calls.

    Features:
    - FIFO admission with retried calls jumping ahead of fresh ones
    - At most ``call_limit`` calls in flight
    - ``min_send_interval`` stagger between successive admissions
    - Quota throttling recovered by requeue plus backoff wait
    - Bounded retry of connection failures and 5xx responses
    - Fire-and-forget dispatch hook for debugging
    """

    def __init__(
        self,
        transport,
        quota: QuotaMonitor,
        call_limit: int = 20,
        min_send_interval: float = 0.05,
        retry_policy: Optional[RetryPolicy] = None,
        max_quota_retries: int = 20,
        on_dispatch: Optional[DispatchHook] = None
    ):
        """
        Initialize request scheduler.

        Args:
            transport: Object with ``async send(call) -> ApiResponse``
            quota: Shared quota monitor
            call_limit: Maximum concurrent in-flight calls
            min_send_interval: Seconds between successive admissions
            retry_policy: Policy for transient network failures
            max_quota_retries: Throttled retries allowed per call
            on_dispatch: Debug hook invoked once per dispatch
        """
        self.transport = transport
        self.quota = quota
        self.call_limit = call_limit
        self.min_send_interval = min_send_interval
        self.retry_policy = retry_policy or create_network_retry_policy()
        self.max_quota_retries = max_quota_retries
        self.on_dispatch = on_dispatch

        self._queue: Deque[PendingCall] = collections.deque()
        self._wakeup: Optional[asyncio.Event] = None
        self._gate: Optional[asyncio.Semaphore] = None
        self._dispatcher: Optional[asyncio.Task] = None
        self._in_flight: Dict[int, asyncio.Task] = {}
        self._retry_timers: Dict[int, Tuple[asyncio.TimerHandle, PendingCall]] = {}
        self._last_dispatch: Optional[float] = None
        self.closed = False

        self.stats = {
            "submitted": 0,
            "dispatched": 0,
            "succeeded": 0,
            "failed": 0,
            "quota_retries": 0,
            "network_retries": 0
        }

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

    async def submit(self, call: PendingCall) -> ApiResponse:
        """
        Queue a call and wait for its response.

        Args:
            call: Call to dispatch

        Returns:
            Successful response

        Raises:
            CanvasHTTPError: Non-retryable HTTP status
            NetworkError: Connection failures outlived the retry policy
            QuotaExhaustedError: Throttled more than ``max_quota_retries`` times
            SchedulerClosedError: Scheduler closed before the call resolved
        """
        if self.closed:
            raise SchedulerClosedError()

        self._ensure_started()
        call.future = asyncio.get_running_loop().create_future()
        self._queue.append(call)
        self.stats["submitted"] += 1
        self._wakeup.set()
        return await call.future

    def _ensure_started(self):
        if self._gate is None:
            self._wakeup = asyncio.Event()
            self._gate = asyncio.Semaphore(self.call_limit)
        if self._dispatcher is None or self._dispatcher.done():
            self._dispatcher = asyncio.create_task(self._dispatch_loop())
            logger.debug(
                f"Dispatcher started: call_limit={self.call_limit}, "
                f"min_send_interval={self.min_send_interval}s"
            )

    def _requeue_front(self, call: PendingCall):
        if self.closed:
            self._reject(call, SchedulerClosedError())
            return
        self._queue.appendleft(call)
        self._wakeup.set()

    async def _dispatch_loop(self):
        """Admit calls while slots, quota and stagger allow."""
        loop = asyncio.get_running_loop()
        while True:
            if not self._queue:
                self._wakeup.clear()
                await self._wakeup.wait()
                continue

            await self._gate.acquire()
            try:
                while True:
                    await self.quota.await_capacity()
                    wait = 0.0
                    if self._last_dispatch is not None:
                        wait = self._last_dispatch + self.min_send_interval - loop.time()
                    if wait <= 0:
                        break
                    await asyncio.sleep(wait)
                    # A response may have lowered the quota during the stagger.
                    if self.quota.may_proceed:
                        break
            except BaseException:
                self._gate.release()
                raise

            # Pop only now so a retry requeued during the waits goes first.
            call = self._next_live_call()
            if call is None:
                self._gate.release()
                continue

            self.quota.consume()
            self._last_dispatch = loop.time()
            task = asyncio.create_task(self._dispatch(call))
            self._in_flight[id(task)] = task
            task.add_done_callback(lambda t: self._in_flight.pop(id(t), None))

    def _next_live_call(self) -> Optional[PendingCall]:
        while self._queue:
            call = self._queue.popleft()
            if call.future is not None and not call.future.done():
                return call
        return None

    async def _dispatch(self, call: PendingCall):
        """Fire one attempt and route the outcome."""
        call.attempts += 1
        self.stats["dispatched"] += 1
        self._notify(call)

        try:
            try:
                response = await self.transport.send(call)
            except NetworkError as e:
                self._retry_or_fail(call, e)
                return

            if response.quota_remaining is not None:
                self.quota.observe(response.quota_remaining)

            if response.is_throttled:
                self._handle_throttled(call)
            elif response.ok:
                self.stats["succeeded"] += 1
                logger.debug(f"{call.method} {call.url} -> {response.status}")
                if not call.future.done():
                    call.future.set_result(response)
            elif response.is_server_error:
                self._retry_or_fail(
                    call, CanvasHTTPError(call.method, call.url, response.status, response.data)
                )
            else:
                self._reject(call, CanvasHTTPError(call.method, call.url, response.status, response.data))
        except asyncio.CancelledError:
            self._reject(call, SchedulerClosedError())
            raise
        except Exception as e:
            self._reject(call, e)
        finally:
            self._gate.release()

    def _handle_throttled(self, call: PendingCall):
        self.quota.observe(0)
        call.quota_retries += 1
        if call.quota_retries > self.max_quota_retries:
            self._reject(call, QuotaExhaustedError(call.method, call.url, call.quota_retries - 1))
            return

        self.stats["quota_retries"] += 1
        logger.warning(
            f"{call.method} {call.url} throttled by server; "
            f"requeued (quota retry {call.quota_retries}/{self.max_quota_retries})"
        )
        self._requeue_front(call)

    def _retry_or_fail(self, call: PendingCall, error: Exception):
        if not self.retry_policy.should_retry(call.attempts, error):
            if isinstance(error, NetworkError):
                error = NetworkError(
                    f"{call.method} {call.url} failed after {call.attempts} attempt(s)",
                    call.method, call.url, attempts=call.attempts, cause=error.cause or error
                )
            self._reject(call, error)
            return

        delay = self.retry_policy.next_delay(call.attempts)
        self.stats["network_retries"] += 1
        logger.warning(
            f"Attempt {call.attempts} of {call.method} {call.url} failed: {error}. "
            f"Retrying in {delay:.2f}s..."
        )
        handle = asyncio.get_running_loop().call_later(delay, self._retry_due, call)
        self._retry_timers[id(call)] = (handle, call)

    def _retry_due(self, call: PendingCall):
        self._retry_timers.pop(id(call), None)
        self._requeue_front(call)

    def _reject(self, call: PendingCall, error: Exception):
        self.stats["failed"] += 1
        logger.error(f"{call.method} {call.url} failed: {error}")
        if call.future is not None and not call.future.done():
            call.future.set_exception(error)

    def _notify(self, call: PendingCall):
        hook = self.on_dispatch
        if hook is None:
            return
        try:
            hook(DispatchRecord(call.method, call.url, call.payload, call.attempts))
        except Exception as e:
            logger.warning(f"Dispatch hook raised: {e}")

    async def probe_status(self, url: str) -> None:
        """
        Read the current quota straight from the server.

        Bypasses the queue and the quota gate, since it is what unblocks the
        gate when nothing else is in flight.
        """
        call = PendingCall("GET", url)
        call.attempts = 1
        self._notify(call)
        response = await self.transport.send(call)
        if response.quota_remaining is not None:
            self.quota.observe(response.quota_remaining)

    async def close(self):
        """Stop dispatching and fail every unresolved call."""
        if self.closed:
            return

        self.closed = True
        if self._dispatcher is not None:
            self._dispatcher.cancel()
            try:
                await self._dispatcher
            except asyncio.CancelledError:
                pass

        while self._queue:
            self._reject(self._queue.popleft(), SchedulerClosedError())

        for handle, call in list(self._retry_timers.values()):
            handle.cancel()
            self._reject(call, SchedulerClosedError())
        self._retry_timers.clear()

        for task in list(self._in_flight.values()):
            task.cancel()
        if self._in_flight:
            await asyncio.gather(*self._in_flight.values(), return_exceptions=True)

        logger.info("Request scheduler closed")

    def get_stats(self) -> Dict[str, Any]:
        """Get scheduler statistics."""
        return {
            **self.stats,
            "queued": len(self._queue),
            "in_flight": len(self._in_flight),
            "awaiting_retry": len(self._retry_timers),
            "quota_remaining": self.quota.remaining
        }
