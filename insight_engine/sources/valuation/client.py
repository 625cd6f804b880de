"""
Valuation provider API client.

Automated value estimates, comparables, neighborhood demographics and
regional market trends. The credential travels in the X-API-Key header.

Rate limits: 2/second, 1000/day.
"""
import logging
from typing import Any, Dict

from insight_engine.core.api_registry import CACHE_TTL, ServiceName
from insight_engine.core.http_client import ServiceClient

logger = logging.getLogger(__name__)


class ValuationClient(ServiceClient):
    """HTTP client for the valuation provider."""

    SERVICE = ServiceName.VALUATION

    DEEP_SEARCH_ENDPOINT = "/GetDeepSearchResults"
    COMPS_ENDPOINT = "/GetComps"
    DEMOGRAPHICS_ENDPOINT = "/demographics"
    TRENDS_ENDPOINT = "/market/trends"

    async def get_property_by_address(
        self, street: str, city_state_zip: str
    ) -> Dict[str, Any]:
        """
        Look up a property and its estimate by address.

        Args:
            street: Street line (e.g., "123 Main St")
            city_state_zip: e.g. "Austin, TX 78701"
        """
        return await self.get(
            self.DEEP_SEARCH_ENDPOINT,
            params={"address": street, "citystatezip": city_state_zip},
            cache_ttl=CACHE_TTL["property_details"],
        )

    async def get_comparables(self, property_id: str, count: int = 10) -> Dict[str, Any]:
        return await self.get(
            self.COMPS_ENDPOINT,
            params={"zpid": property_id, "count": count},
            cache_ttl=CACHE_TTL["property_details"],
        )

    async def get_demographics(
        self, region_id: str, region_type: str = "neighborhood"
    ) -> Dict[str, Any]:
        return await self.get(
            self.DEMOGRAPHICS_ENDPOINT,
            params={"regionId": region_id, "regionType": region_type},
            cache_ttl=CACHE_TTL["demographics"],
        )

    async def get_market_trends(
        self, region_id: str, region_type: str = "city"
    ) -> Dict[str, Any]:
        return await self.get(
            self.TRENDS_ENDPOINT,
            params={"regionId": region_id, "regionType": region_type, "metric": "all"},
            cache_ttl=CACHE_TTL["market_stats"],
        )
