"""
Composition root.

Builds the single shared RateLimiter, CircuitBreaker and ResponseCache,
one client and adapter per core provider, and the DataAggregator that
ties them together.
"""
import logging
from typing import Optional

import httpx

from insight_engine.core.cache import ResponseCache
from insight_engine.core.circuit_breaker import CircuitBreaker, CircuitBreakerConfig
from insight_engine.core.config import Settings, get_settings
from insight_engine.core.rate_limiter import RateLimiter
from insight_engine.core.retry_policy import RetryConfig, RetryPolicy
from insight_engine.services.aggregator import DataAggregator
from insight_engine.sources.listings.adapter import ListingsAdapter
from insight_engine.sources.listings.client import ListingsClient
from insight_engine.sources.public_records.adapter import PublicRecordsAdapter
from insight_engine.sources.public_records.client import PublicRecordsClient
from insight_engine.sources.valuation.adapter import ValuationAdapter
from insight_engine.sources.valuation.client import ValuationClient

logger = logging.getLogger(__name__)


def build_aggregator(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> DataAggregator:
    """
    Wire up a DataAggregator from settings.

    Args:
        settings: Settings to use (defaults to get_settings())
        transport: Optional httpx transport shared by all clients

    Returns:
        DataAggregator owning every long-lived collaborator
    """
    settings = settings or get_settings()

    rate_limiter = RateLimiter()
    cache = ResponseCache()
    circuit_breaker = CircuitBreaker(
        CircuitBreakerConfig(
            failure_threshold=settings.circuit_failure_threshold,
            reset_timeout=settings.circuit_reset_timeout,
        )
    )
    retry_policy = RetryPolicy(
        circuit_breaker,
        RetryConfig(
            max_retries=settings.max_retries,
            initial_delay=settings.retry_initial_delay,
            max_delay=settings.retry_max_delay,
            backoff_factor=settings.retry_backoff_factor,
        ),
    )

    adapters = [
        ListingsAdapter(
            ListingsClient.from_settings(settings, rate_limiter, cache, transport=transport)
        ),
        PublicRecordsAdapter(
            PublicRecordsClient.from_settings(settings, rate_limiter, cache, transport=transport)
        ),
        ValuationAdapter(
            ValuationClient.from_settings(settings, rate_limiter, cache, transport=transport)
        ),
    ]

    configured = [a.service.value for a in adapters if a.is_configured()]
    logger.info(f"Data aggregator ready: configured providers={configured}")

    return DataAggregator(
        adapters=adapters,
        retry_policy=retry_policy,
        circuit_breaker=circuit_breaker,
        rate_limiter=rate_limiter,
        cache=cache,
        provider_deadline=settings.provider_deadline,
    )
