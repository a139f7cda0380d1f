"""
Retrying request executor.

Runs one provider call through the rate governor and retries it with
exponential backoff when the failure is transient:

- TransientServerError / NetworkOrTimeoutError: retried, delay
  ``initial_delay * backoff_multiplier ** attempt`` (1s, 2s, 4s by default)
- Authentication, permission, invalid request, quota errors: raised at once
- RateLimitExceededError: the governor already requeued it; raised as-is
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ...monitoring.metrics import provider_retries_total
from .error_classifier import classify_transport_error
from .exceptions import ProviderError
from .rate_governor import RateGovernor

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, ProviderError) and error.is_retryable


class RetryingExecutor:
    """
    Classification-aware bounded retry around the rate governor.

    Example:
        >>> executor = RetryingExecutor(governor, max_retries=3)
        >>> data = await executor.execute(lambda: send_report(body))
    """

    def __init__(
        self,
        governor: RateGovernor,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        backoff_multiplier: float = 2.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize executor.

        Args:
            governor: Rate governor every attempt is dispatched through
            max_retries: Retries after the first attempt
            initial_delay: Delay before the first retry (seconds)
            backoff_multiplier: Growth factor between retries
            sleep: Cooperative sleep used for backoff
        """
        self.governor = governor
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.backoff_multiplier = backoff_multiplier
        self._sleep = sleep

    async def execute(self, call: Callable[[], Awaitable[T]]) -> T:
        """
        Execute ``call`` with rate limiting and retry.

        Args:
            call: Zero-argument coroutine factory performing one request

        Returns:
            Result of ``call``

        Raises:
            ProviderError: The last classified error once retries are exhausted,
                or the first non-retryable one
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(
                multiplier=self.initial_delay,
                exp_base=self.backoff_multiplier,
            ),
            retry=retry_if_exception(_is_retryable),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                result = await self.governor.run(lambda: self._invoke(call))

        return result

    @staticmethod
    async def _invoke(call: Callable[[], Awaitable[T]]) -> T:
        """Run ``call``, converting raw transport failures into ProviderErrors."""
        try:
            return await call()
        except httpx.TransportError as e:
            raise classify_transport_error(e) from e

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        kind = error.kind.value if isinstance(error, ProviderError) else "unknown"
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0

        provider_retries_total.labels(
            provider=self.governor.provider,
            error_kind=kind,
        ).inc()

        logger.warning(
            f"Retrying {self.governor.provider} request in {delay:.1f}s "
            f"(attempt {retry_state.attempt_number}/{self.max_retries + 1}): {error}"
        )
