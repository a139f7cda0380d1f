"""
Rate Governor for provider API calls.

Provider quotas are coarse per-window request counters. The governor keeps
one counter per client instance and serializes every outbound call through
a single FIFO queue:

1. At most one task executes at a time
2. When the window's quota is spent, the next task sleeps until the reset
3. A fixed delay separates consecutive dispatches
4. A 429 response zeroes the quota, moves the reset time to the provider's
   retry-after hint and requeues the same task at the back of the queue

Example:
    >>> governor = RateGovernor(provider="search_console", quota_limit=600)
    >>> result = await governor.run(lambda: client.post(...))
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, TypeVar

from ...monitoring.metrics import (
    quota_wait_seconds,
    rate_governor_queue_depth,
    rate_limit_hits_total,
)
from .exceptions import RateLimitExceededError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================================================
# Rate Governor State
# ============================================================================

@dataclass
class RateGovernorState:
    """Quota counter and queue bookkeeping for one governor."""

    remaining_quota: int
    quota_reset_at: float  # Monotonic clock seconds

    pending: int = 0
    is_draining: bool = False

    rate_limit_hits: int = 0
    completed_requests: int = 0
    failed_requests: int = 0


# ============================================================================
# Rate Governor
# ============================================================================

class RateGovernor:
    """
    Serializing quota governor.

    ``asyncio.Lock`` wakes waiters in arrival order, which gives the FIFO
    queue. Sleep and clock are injectable so tests can run without real
    waits.
    """

    def __init__(
        self,
        provider: str,
        quota_limit: int,
        quota_window_seconds: float = 60.0,
        inter_request_delay: float = 0.2,
        default_retry_after: float = 60.0,
        max_rate_limit_requeues: int = 3,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize rate governor.

        Args:
            provider: Provider name (metrics label)
            quota_limit: Requests allowed per quota window
            quota_window_seconds: Length of the quota window
            inter_request_delay: Delay inserted after each dispatch
            default_retry_after: Reset delay when a 429 carries no hint
            max_rate_limit_requeues: 429 requeues before the error surfaces
            clock: Monotonic clock
            sleep: Cooperative sleep
        """
        if quota_limit <= 0:
            raise ValueError("quota_limit must be positive")

        self.provider = provider
        self.quota_limit = quota_limit
        self.quota_window_seconds = quota_window_seconds
        self.inter_request_delay = inter_request_delay
        self.default_retry_after = default_retry_after
        self.max_rate_limit_requeues = max_rate_limit_requeues
        self._clock = clock
        self._sleep = sleep

        self.state = RateGovernorState(
            remaining_quota=quota_limit,
            quota_reset_at=clock() + quota_window_seconds,
        )
        self._lock = asyncio.Lock()

        logger.info(
            f"Rate governor initialized: provider={provider}, "
            f"quota={quota_limit}/{quota_window_seconds}s, "
            f"delay={inter_request_delay}s"
        )

    async def run(self, task: Callable[[], Awaitable[T]]) -> T:
        """
        Execute ``task`` under quota control.

        Rate limit responses are absorbed: the task is requeued until it
        succeeds or ``max_rate_limit_requeues`` is exceeded.

        Args:
            task: Zero-argument coroutine factory performing one network call

        Returns:
            Result of ``task``

        Raises:
            RateLimitExceededError: If 429s persist past the requeue budget
            Exception: Any other error raised by ``task``
        """
        requeues = 0

        while True:
            await self._enqueue()
            dispatched = False
            try:
                self.state.is_draining = True
                await self._wait_for_quota()

                dispatched = True
                try:
                    result = await task()
                except RateLimitExceededError as e:
                    self._record_rate_limit(e)
                    if requeues >= self.max_rate_limit_requeues:
                        self.state.failed_requests += 1
                        logger.error(
                            f"Rate limit persisted after {requeues} requeues "
                            f"(provider={self.provider})"
                        )
                        raise
                    requeues += 1
                    logger.info(
                        f"Requeuing rate-limited request "
                        f"(requeue {requeues}/{self.max_rate_limit_requeues})"
                    )
                    continue
                except Exception:
                    self.state.failed_requests += 1
                    raise

                self.state.remaining_quota = max(0, self.state.remaining_quota - 1)
                self.state.completed_requests += 1
                return result

            finally:
                # Release must happen even if the caller is cancelled mid-delay
                try:
                    if dispatched and self.inter_request_delay > 0:
                        await self._sleep(self.inter_request_delay)
                finally:
                    self.state.is_draining = False
                    self._lock.release()

    async def _enqueue(self) -> None:
        """Wait for our turn in the FIFO queue."""
        self.state.pending += 1
        rate_governor_queue_depth.labels(provider=self.provider).set(self.state.pending)
        try:
            await self._lock.acquire()
        finally:
            self.state.pending -= 1
            rate_governor_queue_depth.labels(provider=self.provider).set(self.state.pending)

    async def _wait_for_quota(self) -> None:
        """Block until the current window has quota left."""
        now = self._clock()

        if self.state.remaining_quota <= 0:
            wait_time = max(0.0, self.state.quota_reset_at - now)
            if wait_time > 0:
                logger.info(
                    f"Quota exhausted for {self.provider}. "
                    f"Waiting {wait_time:.1f}s for window reset"
                )
                quota_wait_seconds.labels(provider=self.provider).observe(wait_time)
                await self._sleep(wait_time)
            self._reset_window()

        elif now >= self.state.quota_reset_at:
            # Window elapsed without exhausting the quota
            self._reset_window()

    def _reset_window(self) -> None:
        self.state.remaining_quota = self.quota_limit
        self.state.quota_reset_at = self._clock() + self.quota_window_seconds

    def _record_rate_limit(self, error: RateLimitExceededError) -> None:
        """Zero the quota and push the reset time out by the retry-after hint."""
        retry_after = error.retry_after
        if retry_after is None:
            retry_after = self.default_retry_after

        self.state.remaining_quota = 0
        self.state.quota_reset_at = self._clock() + retry_after
        self.state.rate_limit_hits += 1

        rate_limit_hits_total.labels(provider=self.provider).inc()

        logger.warning(
            f"Rate limit hit for {self.provider}. "
            f"Backoff: {retry_after:.1f}s, total hits: {self.state.rate_limit_hits}"
        )

    def get_state(self) -> Dict[str, Any]:
        """Get governor state for monitoring."""
        return {
            "provider": self.provider,
            "remaining_quota": self.state.remaining_quota,
            "quota_limit": self.quota_limit,
            "seconds_until_reset": max(0.0, self.state.quota_reset_at - self._clock()),
            "pending": self.state.pending,
            "is_draining": self.state.is_draining,
            "rate_limit_hits": self.state.rate_limit_hits,
            "completed_requests": self.state.completed_requests,
            "failed_requests": self.state.failed_requests,
        }
