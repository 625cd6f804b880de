"""
Public records adapter: assessor facts, deeds, taxes, permits,
comparable sales and neighborhood statistics.
"""
import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from insight_engine.core.api_errors import NotFoundError
from insight_engine.core.api_registry import ServiceName
from insight_engine.core.schemas import (
    Address,
    Comparable,
    PermitRecord,
    SaleRecord,
    SourceRecord,
    SubjectProperty,
)
from insight_engine.sources.base import ProviderAdapter
from insight_engine.sources.public_records import metadata
from insight_engine.sources.public_records.client import PublicRecordsClient

logger = logging.getLogger(__name__)


class PublicRecordsAdapter(ProviderAdapter):
    """Adapter for the public records provider."""

    SERVICE = ServiceName.PUBLIC_RECORDS
    COMPARABLE_CONFIDENCE = 90
    COMPARABLE_MONTHS = 6

    client: PublicRecordsClient

    def __init__(
        self,
        client: PublicRecordsClient,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(client)
        self._today = today

    async def fetch_property(self, address: Address) -> SourceRecord:
        response = await self.client.get_property_assessment(address.one_line())
        if not response:
            raise NotFoundError(
                message="No assessor record for address",
                service=self.service.value,
                resource_id=address.one_line(),
            )

        translated = self.translate(metadata.transform_assessment, response)
        return SourceRecord(
            service=self.service,
            facts=translated["facts"],
            extras=translated["extras"],
        )

    async def fetch_neighborhood(self, neighborhood: str, city: str) -> SourceRecord:
        response = await self.client.get_neighborhood_stats(neighborhood, city)
        translated = self.translate(metadata.transform_neighborhood_stats, response)
        return SourceRecord(
            service=self.service,
            facts=translated["facts"],
            extras=translated["extras"],
        )

    async def fetch_comparables(
        self, subject: SubjectProperty, radius: float = 0.5
    ) -> List[Comparable]:
        if not subject.has_coordinates:
            return []
        response = await self.client.get_comparable_sales(
            subject, radius, self.COMPARABLE_MONTHS
        )
        return self.translate(
            metadata.transform_comparables,
            response,
            subject,
            self.comparable_confidence,
            self._today(),
        )

    async def fetch_sales(
        self, address: Address, parcel_number: Optional[str] = None
    ) -> List[SaleRecord]:
        response = await self.client.get_property_deeds(address.one_line(), parcel_number)
        return self.translate(metadata.transform_deeds, response)

    async def fetch_permits(
        self, address: Address, parcel_number: Optional[str] = None
    ) -> List[PermitRecord]:
        response = await self.client.get_building_permits(address.one_line(), parcel_number)
        return self.translate(metadata.transform_permits, response)

    async def fetch_tax_history(
        self, address: Address, parcel_number: Optional[str] = None
    ) -> Dict[str, Any]:
        response = await self.client.get_property_tax_history(
            address.one_line(), parcel_number
        )
        return self.translate(metadata.transform_tax_history, response)
