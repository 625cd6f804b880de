"""
Listings API client (MLS / RESO Web API, OData query syntax).

Endpoints:
- /v2/Property/search - filtered listing search
- /v2/PropertyHistory - price and status changes

Rate limits: 60/minute, 1000/hour, 10000/day (enforced by the shared
RateLimiter before any request leaves the process).
"""
import logging
from typing import Any, Dict, Optional

from insight_engine.core.api_registry import CACHE_TTL, ServiceName
from insight_engine.core.http_client import ServiceClient
from insight_engine.sources.listings import metadata

logger = logging.getLogger(__name__)


class ListingsClient(ServiceClient):
    """HTTP client for the listings provider."""

    SERVICE = ServiceName.LISTINGS

    SEARCH_ENDPOINT = "/v2/Property/search"
    HISTORY_ENDPOINT = "/v2/PropertyHistory"

    DEFAULT_PAGE_SIZE = 50

    async def search_listings(
        self,
        criteria: Dict[str, Any],
        limit: Optional[int] = None,
        offset: int = 0,
        order_by: str = "ListPrice desc",
        bypass_cache: bool = False,
    ) -> Dict[str, Any]:
        """
        Search listings.

        Args:
            criteria: Filter criteria (see metadata.build_filter_query)
            limit: Page size ($top)
            offset: Records to skip ($skip)
            order_by: OData $orderby expression
            bypass_cache: Skip the cache lookup

        Returns:
            Raw OData response with a "value" list
        """
        params = {
            "$filter": metadata.build_filter_query(criteria) or None,
            "$orderby": order_by,
            "$top": limit or self.DEFAULT_PAGE_SIZE,
            "$skip": offset,
            "$select": ",".join(metadata.SEARCH_SELECT_FIELDS),
        }
        logger.debug(f"[{self.service_name}] search filter: {params['$filter']}")
        return await self.get(
            self.SEARCH_ENDPOINT,
            params=params,
            cache_ttl=CACHE_TTL["listings"],
            bypass_cache=bypass_cache,
        )

    async def get_listing_history(self, listing_id: str) -> Dict[str, Any]:
        params = {
            "$filter": f"ListingId eq {metadata.odata_literal(listing_id)}",
            "$orderby": "ModificationTimestamp desc",
        }
        return await self.get(
            self.HISTORY_ENDPOINT,
            params=params,
            cache_ttl=CACHE_TTL["property_details"],
        )
