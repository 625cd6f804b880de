"""
Valuation adapter: estimates, demographics, comparables and market trends.
"""
import logging
from typing import Any, Dict, List

from insight_engine.core.api_errors import NotFoundError
from insight_engine.core.api_registry import ServiceName
from insight_engine.core.schemas import Address, Comparable, SourceRecord, SubjectProperty
from insight_engine.sources.base import ProviderAdapter
from insight_engine.sources.valuation import metadata
from insight_engine.sources.valuation.client import ValuationClient

logger = logging.getLogger(__name__)


class ValuationAdapter(ProviderAdapter):
    """Adapter for the automated valuation provider."""

    SERVICE = ServiceName.VALUATION
    COMPARABLE_CONFIDENCE = 85
    FALLBACK_KINDS = {
        "property": "property",
        "neighborhood": "demographics",
    }

    client: ValuationClient

    async def fetch_property(self, address: Address) -> SourceRecord:
        response = await self.client.get_property_by_address(
            address.street, address.city_state_zip()
        )
        results = self.translate(metadata.parse_search_results, response)
        if not results:
            raise NotFoundError(
                message="No valuation for address",
                service=self.service.value,
                resource_id=address.one_line(),
            )

        translated = self.translate(metadata.transform_property, results[0])
        return SourceRecord(
            service=self.service,
            facts=translated["facts"],
            extras=translated["extras"],
        )

    async def fetch_neighborhood(self, neighborhood: str, city: str) -> SourceRecord:
        response = await self.client.get_demographics(neighborhood, "neighborhood")
        translated = self.translate(metadata.transform_demographics, response)
        return SourceRecord(
            service=self.service,
            facts=translated["facts"],
            extras=translated["extras"],
        )

    async def fetch_comparables(
        self, subject: SubjectProperty, radius: float = 0.5
    ) -> List[Comparable]:
        # Comps are keyed by the provider's own property id
        if not subject.valuation_id:
            return []
        response = await self.client.get_comparables(subject.valuation_id)
        return self.translate(
            metadata.parse_comparables, response, self.comparable_confidence
        )

    async def fetch_market_trends(self, region: str) -> Dict[str, Any]:
        response = await self.client.get_market_trends(region)
        return self.translate(metadata.transform_market_trends, response)
