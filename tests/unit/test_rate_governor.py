"""
Unit tests for the rate governor.

Verifies:
- FIFO serialization of concurrent tasks
- Quota window waits
- 429 requeue with retry-after and requeue budget
- Inter-request delay
- Queue release when a caller is cancelled
"""

import asyncio

import pytest

from conftest import FakeClock
from metrics_ingest.services.providers.exceptions import (
    InvalidRequestError,
    RateLimitExceededError,
)
from metrics_ingest.services.providers.rate_governor import RateGovernor


def make_governor(clock: FakeClock, **kwargs) -> RateGovernor:
    kwargs.setdefault("quota_limit", 10)
    kwargs.setdefault("inter_request_delay", 0)
    return RateGovernor(provider="test", clock=clock, sleep=clock.sleep, **kwargs)


class TestSerialization:
    """Test at most one task runs at a time, in arrival order."""

    @pytest.mark.asyncio
    async def test_fifo_with_quota_of_one(self, clock):
        """Test three concurrent tasks run one after another, waiting out each window."""
        governor = make_governor(clock, quota_limit=1, quota_window_seconds=60)
        events = []

        async def task(n):
            events.append(("start", n))
            await asyncio.sleep(0)
            events.append(("end", n))
            return n

        results = await asyncio.gather(*(governor.run(lambda n=n: task(n)) for n in range(3)))

        assert results == [0, 1, 2]
        assert events == [
            ("start", 0), ("end", 0),
            ("start", 1), ("end", 1),
            ("start", 2), ("end", 2),
        ]
        assert clock.sleeps == [60.0, 60.0]

    @pytest.mark.asyncio
    async def test_inter_request_delay_after_each_dispatch(self, clock):
        governor = make_governor(clock, inter_request_delay=0.2)

        async def task():
            return "ok"

        await governor.run(task)
        await governor.run(task)

        assert clock.sleeps == [0.2, 0.2]
        assert governor.get_state()["completed_requests"] == 2


class TestCancellation:
    """Test an abandoned caller never leaves the queue blocked."""

    @pytest.mark.asyncio
    async def test_cancel_during_inter_request_delay_releases_queue(self, clock):
        delays = []

        async def sleep(seconds):
            delays.append(seconds)
            if len(delays) == 1:
                await asyncio.Event().wait()

        governor = RateGovernor(
            provider="test", quota_limit=10, inter_request_delay=0.3, clock=clock, sleep=sleep
        )

        async def task():
            return "ok"

        caller = asyncio.create_task(governor.run(task))
        while not delays:
            await asyncio.sleep(0)
        caller.cancel()

        with pytest.raises(asyncio.CancelledError):
            await caller

        assert not governor.state.is_draining
        assert await asyncio.wait_for(governor.run(task), timeout=1) == "ok"
        assert delays == [0.3, 0.3]


class TestQuota:
    """Test quota accounting."""

    @pytest.mark.asyncio
    async def test_quota_decrements_on_success(self, clock):
        governor = make_governor(clock, quota_limit=5)

        async def task():
            return None

        await governor.run(task)

        assert governor.state.remaining_quota == 4

    @pytest.mark.asyncio
    async def test_window_refills_after_elapsing(self, clock):
        """Test an elapsed window resets the quota without waiting."""
        governor = make_governor(clock, quota_limit=2, quota_window_seconds=60)

        async def task():
            return None

        await governor.run(task)
        clock.now += 61
        await governor.run(task)

        assert governor.state.remaining_quota == 1
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_failures_do_not_consume_quota(self, clock):
        governor = make_governor(clock, quota_limit=3)

        async def task():
            raise InvalidRequestError("bad")

        with pytest.raises(InvalidRequestError):
            await governor.run(task)

        assert governor.state.remaining_quota == 3
        assert governor.state.failed_requests == 1


class TestRateLimitRequeue:
    """Test 429 handling."""

    @pytest.mark.asyncio
    async def test_requeue_waits_for_retry_after(self, clock):
        """Test a 429 zeroes the quota and the task reruns after the hint."""
        governor = make_governor(clock)
        calls = []

        async def task():
            calls.append(clock.now)
            if len(calls) == 1:
                raise RateLimitExceededError("slow down", 429, retry_after=5.0)
            return "done"

        result = await governor.run(task)

        assert result == "done"
        assert len(calls) == 2
        assert clock.sleeps == [5.0]
        assert governor.state.rate_limit_hits == 1

    @pytest.mark.asyncio
    async def test_default_retry_after(self, clock):
        governor = make_governor(clock, default_retry_after=60.0)
        attempts = []

        async def task():
            attempts.append(1)
            if len(attempts) == 1:
                raise RateLimitExceededError("slow down", 429)
            return "done"

        await governor.run(task)

        assert clock.sleeps == [60.0]

    @pytest.mark.asyncio
    async def test_requeue_budget_exhausted(self, clock):
        """Test persistent 429s surface after max_rate_limit_requeues."""
        governor = make_governor(clock, max_rate_limit_requeues=2)
        attempts = []

        async def task():
            attempts.append(1)
            raise RateLimitExceededError("slow down", 429, retry_after=1.0)

        with pytest.raises(RateLimitExceededError):
            await governor.run(task)

        assert len(attempts) == 3
        assert governor.get_state()["rate_limit_hits"] == 3

    @pytest.mark.asyncio
    async def test_requeued_task_goes_to_back_of_queue(self, clock):
        """Test a rate-limited task runs after tasks already waiting."""
        governor = make_governor(clock)
        order = []
        limited = []

        async def first():
            order.append("first")
            if not limited:
                limited.append(1)
                await asyncio.sleep(0)
                raise RateLimitExceededError("slow down", 429, retry_after=1.0)
            return "first"

        async def second():
            order.append("second")
            return "second"

        results = await asyncio.gather(governor.run(first), governor.run(second))

        assert results == ["first", "second"]
        assert order == ["first", "second", "first"]


class TestGovernorState:
    """Test monitoring snapshot."""

    def test_initial_state(self, clock):
        governor = make_governor(clock, quota_limit=600, quota_window_seconds=60)

        state = governor.get_state()

        assert state["remaining_quota"] == 600
        assert state["seconds_until_reset"] == 60.0
        assert state["pending"] == 0

    def test_rejects_non_positive_quota(self, clock):
        with pytest.raises(ValueError):
            make_governor(clock, quota_limit=0)
