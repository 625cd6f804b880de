"""
Public records API client (county assessor and recorder data).

Endpoints:
- /assessor - assessed values and building characteristics
- /deeds - recorded transfers; /deeds/comparables - nearby sales
- /tax - tax bills and history
- /permits - building permits
- /neighborhood/stats - area aggregates

Rate limits: 30/minute, 5000/day.
"""
import logging
from typing import Any, Dict, Optional

from insight_engine.core.api_registry import CACHE_TTL, ServiceName
from insight_engine.core.http_client import ServiceClient
from insight_engine.core.schemas import SubjectProperty
from insight_engine.sources.public_records.metadata import lookup_params

logger = logging.getLogger(__name__)


class PublicRecordsClient(ServiceClient):
    """HTTP client for the public records provider."""

    SERVICE = ServiceName.PUBLIC_RECORDS

    ASSESSOR_ENDPOINT = "/assessor"
    DEEDS_ENDPOINT = "/deeds"
    TAX_ENDPOINT = "/tax"
    PERMITS_ENDPOINT = "/permits"
    NEIGHBORHOOD_ENDPOINT = "/neighborhood/stats"

    async def get_property_assessment(
        self, address: str, parcel_number: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.get(
            self.ASSESSOR_ENDPOINT,
            params=lookup_params(address, parcel_number),
            cache_ttl=CACHE_TTL["public_records"],
        )

    async def get_property_deeds(
        self, address: str, parcel_number: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.get(
            self.DEEDS_ENDPOINT,
            params=lookup_params(address, parcel_number),
            cache_ttl=CACHE_TTL["public_records"],
        )

    async def get_property_tax_history(
        self, address: str, parcel_number: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.get(
            self.TAX_ENDPOINT,
            params=lookup_params(address, parcel_number),
            cache_ttl=CACHE_TTL["public_records"],
        )

    async def get_building_permits(
        self, address: str, parcel_number: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self.get(
            self.PERMITS_ENDPOINT,
            params=lookup_params(address, parcel_number),
            cache_ttl=CACHE_TTL["public_records"],
        )

    async def get_comparable_sales(
        self, subject: SubjectProperty, radius: float = 0.5, months: int = 12
    ) -> Dict[str, Any]:
        """
        Recorded sales near the subject.

        Bedroom and size bands are only sent when the subject has them.
        """
        params: Dict[str, Any] = {
            "latitude": subject.latitude,
            "longitude": subject.longitude,
            "radius": radius,
            "months": months,
            "property_type": subject.property_type,
        }
        if subject.bedrooms is not None:
            params["bedrooms_min"] = subject.bedrooms - 1
            params["bedrooms_max"] = subject.bedrooms + 1
        if subject.sqft is not None:
            params["sqft_min"] = round(subject.sqft * 0.8)
            params["sqft_max"] = round(subject.sqft * 1.2)

        return await self.get(
            f"{self.DEEDS_ENDPOINT}/comparables",
            params=params,
            cache_ttl=CACHE_TTL["property_details"],
        )

    async def get_neighborhood_stats(self, neighborhood: str, county: str) -> Dict[str, Any]:
        return await self.get(
            self.NEIGHBORHOOD_ENDPOINT,
            params={"neighborhood": neighborhood, "county": county},
            cache_ttl=CACHE_TTL["demographics"],
        )
