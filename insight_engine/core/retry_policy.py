"""
Retry with capped exponential backoff, cooperating with the circuit breaker.

Wraps one logical provider operation. Transient failures (server errors,
network errors, timeouts) are retried up to max_retries times; everything
else propagates on the first occurrence. The backoff is an asyncio sleep, so
cancelling the caller stops the loop immediately.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from insight_engine.core.api_errors import APIError, CircuitOpenError
from insight_engine.core.circuit_breaker import CircuitBreaker

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    max_retries: int = 3
    initial_delay: float = 1.0  # seconds
    max_delay: float = 8.0
    backoff_factor: float = 2.0


class RetryPolicy:
    """
    Bounded retry loop shared by every provider call.

    Args:
        circuit_breaker: Shared breaker consulted before every attempt
        config: Retry parameters
        sleep: Awaitable sleep (asyncio.sleep unless a test replaces it)
        clock: Time source used to honour deadlines
    """

    def __init__(
        self,
        circuit_breaker: CircuitBreaker,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.circuit_breaker = circuit_breaker
        self.config = config or RetryConfig()
        self._sleep = sleep
        self._clock = clock

    def next_delay(self, delay: float) -> float:
        return min(delay * self.config.backoff_factor, self.config.max_delay)

    def deadline_in(self, seconds: float) -> float:
        """Absolute deadline `seconds` from now, on this policy's clock."""
        return self._clock() + seconds

    async def execute(
        self,
        fn: Callable[[], Awaitable[T]],
        service: str,
        deadline: Optional[float] = None,
    ) -> T:
        """
        Run `fn` until it succeeds, fails terminally, or retries run out.

        Args:
            fn: Zero-argument coroutine function performing the operation
            service: Provider name used for circuit breaker bookkeeping
            deadline: Optional absolute time (on this policy's clock) after
                which no further backoff sleep is started

        Returns:
            Result of `fn`

        Raises:
            CircuitOpenError: If the breaker refuses an attempt
            APIError: The last classified error once retries are exhausted
        """
        delay = self.config.initial_delay

        for attempt in range(self.config.max_retries + 1):
            if not self.circuit_breaker.can_make_request(service):
                logger.warning(f"[{service}] Circuit open, not attempting call")
                raise CircuitOpenError(service)

            try:
                result = await fn()
            except asyncio.CancelledError:
                self.circuit_breaker.release_probe(service)
                raise
            except APIError as e:
                error = e
            except Exception as e:
                # Unclassified failure inside an adapter: terminal, generic code
                error = APIError(message=f"Unexpected error: {e}", service=service)
                error.__cause__ = e
            else:
                self.circuit_breaker.record_success(service)
                return result

            if error.counts_against_circuit:
                self.circuit_breaker.record_failure(service)
            else:
                self.circuit_breaker.release_probe(service)

            if not error.retryable:
                raise error

            if attempt >= self.config.max_retries:
                logger.error(
                    f"[{service}] Giving up after {attempt + 1} attempts: {error}"
                )
                raise error

            if deadline is not None and self._clock() + delay > deadline:
                logger.warning(f"[{service}] Deadline reached, not retrying: {error}")
                raise error

            logger.warning(
                f"[{service}] Retryable error (attempt {attempt + 1}/"
                f"{self.config.max_retries + 1}), retrying in {delay:.1f}s: {error}"
            )
            await self._sleep(delay)
            delay = self.next_delay(delay)

        # range() always returns or raises above
        raise APIError(message="Retry loop exited unexpectedly", service=service)
