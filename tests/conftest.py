"""
Pytest configuration and shared fixtures.
"""
from typing import Dict, List, Optional

import pytest

from insight_engine.core.api_registry import ServiceName
from insight_engine.core.cache import ResponseCache
from insight_engine.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from insight_engine.core.config import Settings, reset_settings
from insight_engine.core.rate_limiter import RateLimiter
from insight_engine.core.retry_policy import RetryConfig, RetryPolicy
from insight_engine.core.schemas import Address
from insight_engine.services.aggregator import DataAggregator
from insight_engine.sources.base import ProviderAdapter
from insight_engine.sources.listings.adapter import ListingsAdapter
from insight_engine.sources.listings.client import ListingsClient
from insight_engine.sources.public_records.adapter import PublicRecordsAdapter
from insight_engine.sources.public_records.client import PublicRecordsClient
from insight_engine.sources.valuation.adapter import ValuationAdapter
from insight_engine.sources.valuation.client import ValuationClient


ENV_VARS = [
    "LISTINGS_BASE_URL",
    "LISTINGS_ACCESS_TOKEN",
    "VALUATION_BASE_URL",
    "VALUATION_API_KEY",
    "PUBLIC_RECORDS_BASE_URL",
    "PUBLIC_RECORDS_API_KEY",
    "WALK_SCORE_API_KEY",
    "CENSUS_API_KEY",
    "FRED_API_KEY",
    "REQUEST_TIMEOUT",
    "PROVIDER_DEADLINE",
    "MAX_RETRIES",
    "RETRY_BACKOFF_FACTOR",
    "CIRCUIT_FAILURE_THRESHOLD",
    "LOG_LEVEL",
]


@pytest.fixture(scope="function")
def clean_env(monkeypatch):
    """
    Clean environment for testing.

    Removes all app-related env vars to ensure clean state.
    """
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    # Reset settings singleton
    reset_settings()

    yield

    # Reset again after test
    reset_settings()


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stand-in for asyncio.sleep that records delays instead of waiting."""

    def __init__(self, clock: Optional[FakeClock] = None):
        self.delays: List[float] = []
        self.clock = clock

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.clock is not None:
            self.clock.advance(delay)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper(clock):
    return SleepRecorder(clock)


@pytest.fixture
def rate_limiter(clock):
    return RateLimiter(clock=clock)


@pytest.fixture
def circuit_breaker(clock):
    return CircuitBreaker(CircuitBreakerConfig(failure_threshold=5, reset_timeout=60), clock=clock)


@pytest.fixture
def cache(clock):
    return ResponseCache(clock=clock)


@pytest.fixture
def retry_policy(circuit_breaker, sleeper, clock):
    return RetryPolicy(circuit_breaker, RetryConfig(), sleep=sleeper, clock=clock)


@pytest.fixture
def settings(clean_env):
    return Settings(_env_file=None)


@pytest.fixture
def address():
    return Address(street="123 Main St", city="Austin", state="tx", zip="78701")


def build_adapters(
    rate_limiter: RateLimiter,
    cache: ResponseCache,
    configured: Optional[Dict[ServiceName, bool]] = None,
    transport=None,
) -> Dict[ServiceName, ProviderAdapter]:
    """One real adapter per core provider, credentials set unless disabled."""
    configured = configured or {}

    def credential(service: ServiceName) -> Optional[str]:
        return f"{service.value}-token" if configured.get(service, True) else None

    return {
        ServiceName.LISTINGS: ListingsAdapter(
            ListingsClient(
                credential=credential(ServiceName.LISTINGS),
                rate_limiter=rate_limiter,
                cache=cache,
                transport=transport,
            )
        ),
        ServiceName.PUBLIC_RECORDS: PublicRecordsAdapter(
            PublicRecordsClient(
                credential=credential(ServiceName.PUBLIC_RECORDS),
                rate_limiter=rate_limiter,
                cache=cache,
                transport=transport,
            )
        ),
        ServiceName.VALUATION: ValuationAdapter(
            ValuationClient(
                credential=credential(ServiceName.VALUATION),
                rate_limiter=rate_limiter,
                cache=cache,
                transport=transport,
            )
        ),
    }


@pytest.fixture
def make_adapters(rate_limiter, cache):
    """Factory for adapters sharing the test limiter and cache."""
    def _make(transport=None, configured=None):
        return build_adapters(rate_limiter, cache, configured=configured, transport=transport)
    return _make


@pytest.fixture
def adapters(rate_limiter, cache):
    return build_adapters(rate_limiter, cache)


@pytest.fixture
def aggregator(adapters, retry_policy, circuit_breaker, rate_limiter, cache):
    return DataAggregator(
        adapters=list(adapters.values()),
        retry_policy=retry_policy,
        circuit_breaker=circuit_breaker,
        rate_limiter=rate_limiter,
        cache=cache,
    )
