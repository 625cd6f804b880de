"""
Market data API routes.

Exposes the multi-source aggregator:
- Property data merged from listings, public records and valuation
- Neighborhood statistics and demographics
- Comparables, property history and market forecasts
- Provider status and cache maintenance
"""

import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field

from insight_engine.core.schemas import (
    Address,
    AggregatedRecord,
    Comparable,
    MarketForecast,
    PropertyHistory,
    SubjectProperty,
)
from insight_engine.services.aggregator import DataAggregator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/market-data", tags=["Market Data"])


# Response models
class CacheClearResponse(BaseModel):
    """Response model for cache clearing."""

    cleared: int = Field(..., description="Number of cached responses removed")


def get_aggregator(request: Request) -> DataAggregator:
    """Resolve the aggregator built by the application lifespan."""
    return request.app.state.aggregator


def address_query(
    street: str = Query(..., min_length=1, description="Street line, e.g. 123 Main St"),
    city: str = Query(..., min_length=1),
    state: str = Query(..., min_length=2, max_length=2, description="Two-letter state code"),
    zip: str = Query(..., min_length=3, max_length=10),
) -> Address:
    return Address(street=street, city=city, state=state, zip=zip)


@router.get("/property", response_model=AggregatedRecord)
async def get_property_data(
    address: Address = Depends(address_query),
    include_comparables: bool = Query(True),
    include_history: bool = Query(True),
    include_tax_data: bool = Query(True),
    use_fallback: bool = Query(False, description="Substitute fallback data for failed providers"),
    aggregator: DataAggregator = Depends(get_aggregator),
):
    """
    Get property data merged from every configured provider.

    Facts are merged by precedence (listings, then public records, then
    valuation). Provider failures are reported in `errors` and never fail
    the request.
    """
    return await aggregator.get_property_data(
        address,
        include_comparables=include_comparables,
        include_history=include_history,
        include_tax_data=include_tax_data,
        use_fallback=use_fallback,
    )


@router.get("/neighborhood", response_model=AggregatedRecord)
async def get_neighborhood_data(
    neighborhood: str = Query(..., min_length=1),
    city: str = Query(..., min_length=1),
    use_fallback: bool = Query(True),
    aggregator: DataAggregator = Depends(get_aggregator),
):
    """
    Get neighborhood market statistics and demographics.

    A `reliability` block is included whenever a provider failed.
    """
    return await aggregator.get_neighborhood_data(
        neighborhood, city, use_fallback=use_fallback
    )


@router.get("/comparables", response_model=List[Comparable])
async def get_comparables(
    latitude: Optional[float] = Query(None, ge=-90, le=90),
    longitude: Optional[float] = Query(None, ge=-180, le=180),
    property_type: Optional[str] = Query(None),
    bedrooms: Optional[float] = Query(None, ge=0),
    bathrooms: Optional[float] = Query(None, ge=0),
    sqft: Optional[float] = Query(None, gt=0),
    year_built: Optional[int] = Query(None),
    valuation_id: Optional[str] = Query(None, description="Valuation provider property id"),
    radius: float = Query(0.5, gt=0, le=10, description="Search radius in miles"),
    aggregator: DataAggregator = Depends(get_aggregator),
):
    """Comparables from all providers, deduplicated and sorted by confidence."""
    subject = SubjectProperty(
        latitude=latitude,
        longitude=longitude,
        property_type=property_type,
        bedrooms=bedrooms,
        bathrooms=bathrooms,
        sqft=sqft,
        year_built=year_built,
        valuation_id=valuation_id,
    )
    return await aggregator.get_comparables(subject, radius=radius)


@router.get("/history", response_model=PropertyHistory)
async def get_property_history(
    address: Address = Depends(address_query),
    listing_id: Optional[str] = Query(None),
    aggregator: DataAggregator = Depends(get_aggregator),
):
    """Sales, permits and (with a listing id) listing price changes."""
    return await aggregator.get_property_history(address, listing_id=listing_id)


@router.get("/forecast", response_model=MarketForecast)
async def get_market_forecast(
    region: str = Query(..., min_length=1),
    months: int = Query(6, ge=1, le=24),
    aggregator: DataAggregator = Depends(get_aggregator),
):
    """Price change forecast for a region, month by month."""
    return await aggregator.get_market_forecast(region, months=months)


@router.get("/status")
def get_service_status(aggregator: DataAggregator = Depends(get_aggregator)):
    """Configured flag, circuit state and remaining rate budget per provider."""
    return aggregator.get_service_status()


@router.delete("/cache", response_model=CacheClearResponse)
def clear_cache(aggregator: DataAggregator = Depends(get_aggregator)):
    """Drop every cached provider response."""
    return CacheClearResponse(cleared=aggregator.clear_cache())
