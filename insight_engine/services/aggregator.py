"""
Multi-source data aggregator.

Fans each request out to every configured provider concurrently, waits for
all of them (each bounded by its own deadline), then merges whatever came
back by a fixed precedence. One provider failing never fails the call:
failures become ProviderErrors on the record, and fallback data is
substituted where the caller asked for it.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from insight_engine.core.api_errors import APIError, ErrorCode, RequestTimeoutError
from insight_engine.core.api_registry import ServiceName
from insight_engine.core.cache import ResponseCache
from insight_engine.core.circuit_breaker import CircuitBreaker
from insight_engine.core.fallback import get_fallback_data
from insight_engine.core.rate_limiter import RateLimiter
from insight_engine.core.retry_policy import RetryPolicy
from insight_engine.core.schemas import (
    Address,
    AggregatedRecord,
    Comparable,
    ForecastPoint,
    MarketForecast,
    PropertyHistory,
    ProviderError,
    ProviderResult,
    SourceRecord,
    SubjectProperty,
)
from insight_engine.services.forecast import (
    PROVIDER_CONFIDENCE,
    calculate_forecast,
    combine_forecasts,
)
from insight_engine.services.merge import (
    calculate_reliability,
    merge_records,
    precedence_rank,
)
from insight_engine.sources.base import ProviderAdapter

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DataAggregator:
    """
    Combines property and market data from the listings, valuation and
    public records providers.

    All collaborators are injected; build one with
    insight_engine.services.factory.build_aggregator().
    """

    def __init__(
        self,
        adapters: List[ProviderAdapter],
        retry_policy: RetryPolicy,
        circuit_breaker: CircuitBreaker,
        rate_limiter: RateLimiter,
        cache: ResponseCache,
        provider_deadline: float = 45.0,
    ):
        self.adapters: Dict[ServiceName, ProviderAdapter] = {
            adapter.service: adapter for adapter in adapters
        }
        self.retry_policy = retry_policy
        self.circuit_breaker = circuit_breaker
        self.rate_limiter = rate_limiter
        self.cache = cache
        self.provider_deadline = provider_deadline

    # -------------------------------------------------------------------------
    # Provider access
    # -------------------------------------------------------------------------

    def configured_adapters(self) -> List[ProviderAdapter]:
        """Adapters with credentials, in merge precedence order."""
        return sorted(
            [a for a in self.adapters.values() if a.is_configured()],
            key=lambda a: precedence_rank(a.service),
        )

    def _adapter(self, service: ServiceName) -> Optional[ProviderAdapter]:
        adapter = self.adapters.get(service)
        if adapter is None or not adapter.is_configured():
            return None
        return adapter

    async def _call(
        self, service: ServiceName, operation: Callable[[], Awaitable[T]]
    ) -> T:
        """
        Run one provider operation under the retry policy and deadline.

        Raises:
            APIError: Classified failure (deadline expiry becomes TIMEOUT)
        """
        deadline = self.retry_policy.deadline_in(self.provider_deadline)
        try:
            return await asyncio.wait_for(
                self.retry_policy.execute(operation, service.value, deadline=deadline),
                timeout=self.provider_deadline,
            )
        except asyncio.TimeoutError:
            # The cancelled retry loop only freed the probe slot
            self.circuit_breaker.record_failure(service.value)
            raise RequestTimeoutError(
                message=f"No answer within {self.provider_deadline:.0f}s",
                service=service.value,
            )

    @staticmethod
    def _provider_error(service: ServiceName, error: BaseException) -> ProviderError:
        if isinstance(error, APIError):
            return ProviderError(service=service, code=error.code, message=error.message)
        return ProviderError(service=service, code=ErrorCode.API_ERROR, message=str(error))

    async def _fan_out(
        self,
        label: str,
        calls: Dict[ServiceName, Callable[[], Awaitable[T]]],
    ) -> List[Tuple[ServiceName, Any]]:
        """
        Run one call per provider concurrently.

        Returns:
            (service, outcome) pairs where outcome is the result or the
            exception raised
        """
        services = list(calls)
        outcomes = await asyncio.gather(
            *[self._call(service, calls[service]) for service in services],
            return_exceptions=True,
        )

        pairs = []
        for service, outcome in zip(services, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning(f"[{service.value}] {label} failed: {outcome}")
            pairs.append((service, outcome))
        return pairs

    async def _fetch_records(
        self,
        label: str,
        calls: Dict[ServiceName, Callable[[], Awaitable[SourceRecord]]],
    ) -> List[ProviderResult]:
        results = []
        for service, outcome in await self._fan_out(label, calls):
            if isinstance(outcome, BaseException):
                results.append(
                    ProviderResult(
                        service=service, error=self._provider_error(service, outcome)
                    )
                )
            else:
                results.append(ProviderResult(service=service, data=outcome))
        return results

    def _fallbacks(self, kind: str, results: List[ProviderResult]) -> List[SourceRecord]:
        fallbacks = []
        for result in results:
            if result.ok:
                continue
            record = self.adapters[result.service].fallback_record(kind)
            if record is not None:
                logger.info(f"[{result.service.value}] Using {kind} fallback data")
                fallbacks.append(record)
        return fallbacks

    # -------------------------------------------------------------------------
    # Property data
    # -------------------------------------------------------------------------

    async def get_property_data(
        self,
        address: Address,
        include_comparables: bool = True,
        include_history: bool = True,
        include_tax_data: bool = True,
        use_fallback: bool = False,
    ) -> AggregatedRecord:
        """
        Get comprehensive property data from all configured providers.

        Args:
            address: Property address
            include_comparables: Attach comparables when listings or
                valuation contributed
            include_history: Attach sales/permit history when public
                records contributed
            include_tax_data: Attach tax history when public records
                contributed
            use_fallback: Substitute fallback records for failed providers

        Returns:
            Merged record; never raises for provider failures
        """
        adapters = self.configured_adapters()
        if not adapters:
            logger.warning("No providers configured; returning an empty property record")

        results = await self._fetch_records(
            "property fetch",
            {
                adapter.service: (lambda adapter=adapter: adapter.fetch_property(address))
                for adapter in adapters
            },
        )
        fallbacks = self._fallbacks("property", results) if use_fallback else []
        record = merge_records("property", results, fallbacks, query=address.model_dump())
        errors = list(record.errors)

        contributed = set(record.sources)
        public_records = record.extras.get(ServiceName.PUBLIC_RECORDS.value, {})
        listings = record.extras.get(ServiceName.LISTINGS.value, {})

        if include_comparables and contributed & {ServiceName.LISTINGS, ServiceName.VALUATION}:
            record.comparables, comp_errors = await self._fetch_comparables(
                SubjectProperty.from_record(record)
            )
            errors.extend(comp_errors)

        if include_history and ServiceName.PUBLIC_RECORDS in contributed:
            record.history, history_errors = await self._fetch_history(
                address,
                parcel_number=public_records.get("parcel_number"),
                listing_id=listings.get("listing_id"),
            )
            errors.extend(history_errors)

        if include_tax_data and ServiceName.PUBLIC_RECORDS in contributed:
            adapter = self.adapters[ServiceName.PUBLIC_RECORDS]
            try:
                record.tax_history = await self._call(
                    adapter.service,
                    lambda: adapter.fetch_tax_history(
                        address, public_records.get("parcel_number")
                    ),
                )
            except Exception as e:
                logger.warning(f"[{adapter.service.value}] tax history failed: {e}")
                errors.append(self._provider_error(adapter.service, e))

        record.errors = errors
        logger.info(
            f"Property data for {address.one_line()}: sources="
            f"{[s.value for s in record.sources]}, "
            f"score={record.data_quality.score}, errors={len(errors)}"
        )
        return record

    # -------------------------------------------------------------------------
    # Neighborhood data
    # -------------------------------------------------------------------------

    async def get_neighborhood_data(
        self,
        neighborhood: str,
        city: str,
        use_fallback: bool = True,
    ) -> AggregatedRecord:
        """
        Get neighborhood market statistics and demographics.

        Fallback data is substituted for failed providers by default; a
        reliability summary is attached whenever any provider failed.
        """
        adapters = self.configured_adapters()
        results = await self._fetch_records(
            "neighborhood fetch",
            {
                adapter.service: (
                    lambda adapter=adapter: adapter.fetch_neighborhood(neighborhood, city)
                )
                for adapter in adapters
            },
        )
        fallbacks = self._fallbacks("neighborhood", results) if use_fallback else []
        record = merge_records(
            "neighborhood",
            results,
            fallbacks,
            query={"neighborhood": neighborhood, "city": city},
        )

        if record.errors:
            record.reliability = calculate_reliability(results, fallbacks, len(results))

        return record

    # -------------------------------------------------------------------------
    # Comparables
    # -------------------------------------------------------------------------

    async def _fetch_comparables(
        self, subject: SubjectProperty, radius: float = 0.5
    ) -> Tuple[List[Comparable], List[ProviderError]]:
        adapters = sorted(
            self.configured_adapters(),
            key=lambda a: a.comparable_confidence,
            reverse=True,
        )
        outcomes = await self._fan_out(
            "comparables fetch",
            {
                adapter.service: (
                    lambda adapter=adapter: adapter.fetch_comparables(subject, radius)
                )
                for adapter in adapters
            },
        )

        comparables: List[Comparable] = []
        errors: List[ProviderError] = []
        seen = set()
        # Higher-confidence providers claim an address first
        for service, outcome in outcomes:
            if isinstance(outcome, BaseException):
                errors.append(self._provider_error(service, outcome))
                continue
            for comp in outcome:
                key = comp.dedup_key()
                if key in seen:
                    continue
                seen.add(key)
                comparables.append(comp)

        comparables.sort(key=lambda c: c.confidence, reverse=True)
        return comparables, errors

    async def get_comparables(
        self, subject: SubjectProperty, radius: float = 0.5
    ) -> List[Comparable]:
        """
        Comparables from every configured provider, deduplicated by address.

        When two providers report the same property, the one with the
        higher comparable confidence (listings 95, public records 90,
        valuation 85) is kept. Results are sorted by confidence, stable
        within a provider.
        """
        comparables, _ = await self._fetch_comparables(subject, radius)
        return comparables

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    async def _fetch_history(
        self,
        address: Address,
        parcel_number: Optional[str] = None,
        listing_id: Optional[str] = None,
    ) -> Tuple[PropertyHistory, List[ProviderError]]:
        history = PropertyHistory()
        errors: List[ProviderError] = []

        public_records = self._adapter(ServiceName.PUBLIC_RECORDS)
        listings = self._adapter(ServiceName.LISTINGS)

        tasks = []
        if public_records is not None:
            tasks.append(
                ("sales", public_records.service,
                 lambda: public_records.fetch_sales(address, parcel_number))
            )
            tasks.append(
                ("permits", public_records.service,
                 lambda: public_records.fetch_permits(address, parcel_number))
            )
        if listings is not None and listing_id:
            tasks.append(
                ("price_changes", listings.service,
                 lambda: listings.fetch_price_changes(listing_id))
            )

        outcomes = await asyncio.gather(
            *[self._call(service, operation) for _, service, operation in tasks],
            return_exceptions=True,
        )
        for (field, service, _), outcome in zip(tasks, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.warning(f"[{service.value}] {field} history failed: {outcome}")
                errors.append(self._provider_error(service, outcome))
            else:
                setattr(history, field, outcome)

        return history, errors

    async def get_property_history(
        self, address: Address, listing_id: Optional[str] = None
    ) -> PropertyHistory:
        """
        Sales (deeds) and permits from public records, plus listing price
        changes when a listing id is given and listings is configured.
        """
        history, _ = await self._fetch_history(address, listing_id=listing_id)
        return history

    # -------------------------------------------------------------------------
    # Forecast
    # -------------------------------------------------------------------------

    async def get_market_forecast(self, region: str, months: int = 6) -> MarketForecast:
        """
        Forecast price change for a region.

        Combines the valuation provider's appreciation forecast with a
        linear trend over its historical series. When neither is
        available, a static fallback forecast is returned.
        """
        forecasts: Dict[str, Dict[str, Any]] = {}

        valuation = self._adapter(ServiceName.VALUATION)
        if valuation is not None:
            try:
                trends = await self._call(
                    valuation.service, lambda: valuation.fetch_market_trends(region)
                )
            except Exception as e:
                logger.warning(f"[{valuation.service.value}] market trends failed: {e}")
            else:
                appreciation = trends["trends"]["forecasted_appreciation"]
                if appreciation is not None:
                    forecasts["valuation"] = {
                        "appreciation": appreciation,
                        "confidence": PROVIDER_CONFIDENCE,
                        "factors": [
                            "Historical trends",
                            "Economic indicators",
                            "Inventory levels",
                        ],
                    }
                if len(trends["historical"]) >= 2:
                    forecasts["calculated"] = calculate_forecast(trends["historical"], months)

        if not forecasts:
            return self._fallback_forecast(region, months)

        return combine_forecasts(region, forecasts, months)

    @staticmethod
    def _fallback_forecast(region: str, months: int) -> MarketForecast:
        fallback = get_fallback_data(ServiceName.VALUATION.value, "forecast")
        return MarketForecast(
            region=region,
            months=months,
            predictions=[
                ForecastPoint(month=i + 1, change_percent=fallback["price_appreciation"])
                for i in range(months)
            ],
            confidence=fallback["confidence"],
            factors=fallback["factors"],
            is_fallback=True,
            message=fallback["message"],
        )

    # -------------------------------------------------------------------------
    # Status and maintenance
    # -------------------------------------------------------------------------

    def get_service_status(self) -> Dict[str, Any]:
        """Configured flag, circuit status and rate budget per provider."""
        services = {}
        for service, adapter in sorted(
            self.adapters.items(), key=lambda item: precedence_rank(item[0])
        ):
            services[service.value] = {
                "configured": adapter.is_configured(),
                "circuit": self.circuit_breaker.get_status(service.value),
                "rate_limit_remaining": adapter.client.get_rate_limit_status(),
                "throttled": self.rate_limiter.get_stats(service.value)["total_throttled"],
            }

        cache_stats = self.cache.stats()
        return {
            "services": services,
            "cache": {
                "size": cache_stats["size"],
                "hits": cache_stats["hits"],
                "misses": cache_stats["misses"],
            },
        }

    def clear_cache(self) -> int:
        """Drop every cached response. Returns the number of entries removed."""
        removed = len(self.cache)
        self.cache.clear()
        logger.info(f"Cleared {removed} cached responses")
        return removed

    async def close(self) -> None:
        for adapter in self.adapters.values():
            await adapter.close()
