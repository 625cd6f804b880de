"""
Listings adapter: property facts, area statistics and sold comparables
from the MLS feed.
"""
import logging
from typing import Any, Dict, List

from insight_engine.core.api_errors import NotFoundError
from insight_engine.core.api_registry import ServiceName
from insight_engine.core.schemas import Address, Comparable, SourceRecord, SubjectProperty
from insight_engine.sources.base import ProviderAdapter
from insight_engine.sources.listings import metadata
from insight_engine.sources.listings.client import ListingsClient

logger = logging.getLogger(__name__)


class ListingsAdapter(ProviderAdapter):
    """Adapter for the listings provider."""

    SERVICE = ServiceName.LISTINGS
    COMPARABLE_CONFIDENCE = 95

    MARKET_STATS_SAMPLE = 1000
    COMPARABLE_SOLD_WITHIN_DAYS = 180

    client: ListingsClient

    async def fetch_property(self, address: Address) -> SourceRecord:
        response = await self.client.search_listings(
            {"address": address.street, "city": address.city}, limit=1
        )
        search = self.translate(metadata.parse_search_response, response)
        if not search["listings"]:
            raise NotFoundError(
                message="No listing matches address",
                service=self.service.value,
                resource_id=address.one_line(),
            )

        listing = search["listings"][0]
        return SourceRecord(
            service=self.service,
            facts=listing["facts"],
            extras=listing["extras"],
        )

    async def fetch_neighborhood(self, neighborhood: str, city: str) -> SourceRecord:
        # The feed has no neighborhood field, so stats cover the city sample
        response = await self.client.search_listings(
            {"city": city, "include_status": ["Active", "Pending", "Sold"]},
            limit=self.MARKET_STATS_SAMPLE,
        )
        search = self.translate(metadata.parse_search_response, response)
        stats = self.translate(metadata.summarize_market_stats, search)
        return SourceRecord(
            service=self.service,
            facts=stats["facts"],
            extras=stats["extras"],
        )

    async def fetch_comparables(
        self, subject: SubjectProperty, radius: float = 0.5
    ) -> List[Comparable]:
        if not subject.has_coordinates:
            logger.debug(f"[{self.service.value}] Subject has no coordinates, skipping")
            return []

        criteria: Dict[str, Any] = {
            "latitude": subject.latitude,
            "longitude": subject.longitude,
            "radius": radius,
            "property_type": subject.property_type,
            "status": "Closed",
            "sold_within_days": self.COMPARABLE_SOLD_WITHIN_DAYS,
        }
        if subject.bedrooms:
            criteria["min_bedrooms"] = max(subject.bedrooms - 1, 0)
            criteria["max_bedrooms"] = subject.bedrooms + 1
        if subject.sqft:
            criteria["min_sqft"] = subject.sqft * 0.8
            criteria["max_sqft"] = subject.sqft * 1.2

        response = await self.client.search_listings(criteria)
        search = self.translate(metadata.parse_search_response, response)
        return [
            self.translate(
                metadata.listing_to_comparable, listing, self.comparable_confidence
            )
            for listing in search["listings"]
            if listing["facts"].get("address")
        ]

    async def fetch_price_changes(self, listing_id: str) -> List[Dict[str, Any]]:
        response = await self.client.get_listing_history(listing_id)
        return self.translate(metadata.parse_history_response, response)
