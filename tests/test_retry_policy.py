"""
Unit tests for insight_engine/core/retry_policy.py

Sleeps are recorded instead of awaited, so backoff schedules can be
asserted exactly.
"""
import asyncio

import pytest

from insight_engine.core.api_errors import (
    APIError,
    CircuitOpenError,
    ErrorCode,
    NotFoundError,
    RateLimitError,
    ServerError,
)
from insight_engine.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
from insight_engine.core.retry_policy import RetryConfig, RetryPolicy


class Flaky:
    """Coroutine function that raises the queued outcomes in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class TestBackoff:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fail_fail_succeed(self, retry_policy, sleeper):
        fn = Flaky(ServerError(), ServerError(), {"ok": True})

        result = await retry_policy.execute(fn, "listings")

        assert result == {"ok": True}
        assert fn.calls == 3
        assert sleeper.delays == [1.0, 2.0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_exhaustion_raises_last_error(self, retry_policy, sleeper):
        fn = Flaky(*[ServerError(message=f"boom {i}") for i in range(4)])

        with pytest.raises(ServerError) as exc:
            await retry_policy.execute(fn, "listings")

        assert exc.value.message == "boom 3"
        assert fn.calls == 4
        assert sleeper.delays == [1.0, 2.0, 4.0]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_delay_capped_at_max(self, sleeper, clock):
        breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=100), clock=clock)
        policy = RetryPolicy(breaker, RetryConfig(max_retries=5), sleep=sleeper, clock=clock)
        fn = Flaky(*[ServerError() for _ in range(6)])

        with pytest.raises(ServerError):
            await policy.execute(fn, "listings")

        assert sleeper.delays == [1.0, 2.0, 4.0, 8.0, 8.0]

    @pytest.mark.unit
    def test_next_delay(self, retry_policy):
        assert retry_policy.next_delay(1.0) == 2.0
        assert retry_policy.next_delay(6.0) == 8.0


class TestTerminalErrors:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self, retry_policy, sleeper):
        fn = Flaky(NotFoundError(service="listings"))

        with pytest.raises(NotFoundError):
            await retry_policy.execute(fn, "listings")

        assert fn.calls == 1
        assert sleeper.delays == []

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rate_limit_is_terminal_and_not_a_breaker_failure(
        self, retry_policy, circuit_breaker
    ):
        fn = Flaky(RateLimitError(service="listings"))

        with pytest.raises(RateLimitError):
            await retry_policy.execute(fn, "listings")

        assert fn.calls == 1
        assert circuit_breaker.get_status("listings")["consecutive_failures"] == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unclassified_exception_becomes_api_error(self, retry_policy):
        fn = Flaky(KeyError("price"))

        with pytest.raises(APIError) as exc:
            await retry_policy.execute(fn, "valuation")

        assert exc.value.code == ErrorCode.API_ERROR
        assert isinstance(exc.value.__cause__, KeyError)
        assert fn.calls == 1


class TestCircuitCooperation:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_open_circuit_short_circuits(self, retry_policy, circuit_breaker):
        for _ in range(5):
            circuit_breaker.record_failure("listings")
        fn = Flaky({"ok": True})

        with pytest.raises(CircuitOpenError):
            await retry_policy.execute(fn, "listings")

        assert fn.calls == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_circuit_opening_mid_retry_stops_loop(self, sleeper, clock):
        breaker = CircuitBreaker(CircuitBreakerConfig(failure_threshold=2), clock=clock)
        policy = RetryPolicy(breaker, RetryConfig(max_retries=3), sleep=sleeper)
        fn = Flaky(ServerError(), ServerError(), ServerError(), ServerError())

        with pytest.raises(CircuitOpenError):
            await policy.execute(fn, "listings")

        assert fn.calls == 2
        assert breaker.state("listings") == CircuitState.OPEN

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_success_records_success(self, retry_policy, circuit_breaker):
        circuit_breaker.record_failure("listings")
        await retry_policy.execute(Flaky("ok"), "listings")
        assert circuit_breaker.get_status("listings")["consecutive_failures"] == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_terminal_error_releases_probe(self, retry_policy, circuit_breaker, clock):
        for _ in range(5):
            circuit_breaker.record_failure("listings")
        clock.advance(60)

        with pytest.raises(NotFoundError):
            await retry_policy.execute(Flaky(NotFoundError()), "listings")

        assert circuit_breaker.state("listings") == CircuitState.HALF_OPEN
        assert circuit_breaker.get_status("listings")["probe_in_flight"] is False

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_cancellation_releases_probe(self, retry_policy, circuit_breaker, clock):
        for _ in range(5):
            circuit_breaker.record_failure("listings")
        clock.advance(60)

        with pytest.raises(asyncio.CancelledError):
            await retry_policy.execute(Flaky(asyncio.CancelledError()), "listings")

        assert circuit_breaker.get_status("listings")["probe_in_flight"] is False


class TestDeadline:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_sleep_past_deadline(self, retry_policy, sleeper):
        fn = Flaky(ServerError(), ServerError(), "ok")
        deadline = retry_policy.deadline_in(1.5)

        with pytest.raises(ServerError):
            await retry_policy.execute(fn, "listings", deadline=deadline)

        # First backoff (1s) fits, the second (2s) would overrun
        assert sleeper.delays == [1.0]
        assert fn.calls == 2

    @pytest.mark.unit
    def test_deadline_in_uses_policy_clock(self, retry_policy, clock):
        assert retry_policy.deadline_in(10) == clock.now + 10
