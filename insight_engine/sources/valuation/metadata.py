"""
Valuation provider metadata utilities.

Handles:
- Lenient numeric parsing (the provider returns most numbers as strings)
- Translating property, comparable, demographic and trend payloads
"""
import logging
from typing import Any, Dict, List, Optional

from insight_engine.core.api_registry import ServiceName
from insight_engine.core.schemas import Comparable

logger = logging.getLogger(__name__)


def to_int(value: Any) -> Optional[int]:
    """Parse an integer-ish value; None if absent or unparseable."""
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def as_list(value: Any) -> List[Any]:
    """The provider returns a bare object when there is exactly one result."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def parse_search_results(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Extract the raw result list from a deep search response."""
    results = (
        ((response.get("searchresults") or {}).get("response") or {}).get("results")
        or {}
    ).get("result")
    return as_list(results)


def transform_property(raw: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Translate one property result.

    The automated estimate and its range stay in extras: they are this
    provider's opinion, not a shared fact.

    Returns:
        Dict with "facts" and "extras"
    """
    prop = raw.get("property") or raw
    details = prop.get("details") or {}
    address = prop.get("address") or {}
    estimate = prop.get("zestimate") or {}
    estimate_range = estimate.get("valuationRange") or {}
    rent = prop.get("rentZestimate") or {}
    rent_range = rent.get("valuationRange") or {}
    links = prop.get("links") or {}

    facts = {
        "address": address.get("street"),
        "city": address.get("city"),
        "state": address.get("state"),
        "zip": address.get("zipcode"),
        "latitude": to_float(address.get("latitude")),
        "longitude": to_float(address.get("longitude")),
        "property_type": details.get("homeType"),
        "bedrooms": to_int(details.get("bedrooms")),
        "bathrooms": to_float(details.get("bathrooms")),
        "sqft": to_int(details.get("livingArea")),
        "lot_size": to_int(details.get("lotSize")),
        "year_built": to_int(details.get("yearBuilt")),
    }

    extras = {
        "property_id": prop.get("zpid"),
        "estimate": to_int(estimate.get("amount")),
        "estimate_low": to_int(estimate_range.get("low")),
        "estimate_high": to_int(estimate_range.get("high")),
        "last_updated": estimate.get("lastUpdated"),
        "value_change": to_int(estimate.get("valueChange")),
        "percent_change": to_float(estimate.get("percentChange")),
        "rent_estimate": to_int(rent.get("amount")),
        "rent_low": to_int(rent_range.get("low")),
        "rent_high": to_int(rent_range.get("high")),
        "parking": details.get("parking"),
        "heating": details.get("heating"),
        "cooling": details.get("cooling"),
        "appliances": details.get("appliances") or [],
        "price_history": prop.get("priceHistory") or [],
        "tax_history": prop.get("taxHistory") or [],
        "schools": prop.get("schools") or [],
        "links": {
            "home_details": links.get("homeDetails"),
            "photos": links.get("photos"),
            "map": links.get("map"),
        },
    }

    return {"facts": facts, "extras": extras}


def parse_comparables(response: Dict[str, Any], confidence: int) -> List[Comparable]:
    """Translate a comps response into Comparables."""
    comps = (
        ((response.get("comps") or {}).get("response") or {}).get("properties") or {}
    ).get("comp")

    comparables = []
    for comp in as_list(comps):
        address = comp.get("address") or {}
        if not address.get("street"):
            continue
        comparables.append(
            Comparable(
                address=address["street"],
                zip=address.get("zipcode"),
                source=ServiceName.VALUATION,
                confidence=confidence,
                price=to_int(comp.get("lastSoldPrice"))
                or to_int((comp.get("zestimate") or {}).get("amount")),
                sale_date=comp.get("lastSoldDate"),
                distance=to_float(comp.get("distance")),
                bedrooms=to_int(comp.get("bedrooms")),
                bathrooms=to_float(comp.get("bathrooms")),
                sqft=to_int(comp.get("finishedSqFt")),
                year_built=to_int(comp.get("yearBuilt")),
            )
        )
    return comparables


def transform_demographics(raw: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Translate a demographics payload into the neighborhood record shape.

    The provider's market medians are shared facts; the rest is kept
    under demographics/education/market in extras.
    """
    facts = {
        "median_price": raw.get("medianSalePrice"),
        "median_list_price": raw.get("medianListPrice"),
        "median_rent": raw.get("medianRent"),
    }
    extras = {
        "region_id": raw.get("regionId"),
        "region_name": raw.get("regionName"),
        "demographics": {
            "median_age": raw.get("medianAge"),
            "median_income": raw.get("medianHouseholdIncome"),
            "population_density": raw.get("populationDensity"),
            "percent_owner_occupied": raw.get("percentOwnerOccupied"),
            "percent_renter_occupied": raw.get("percentRenterOccupied"),
            "median_home_value": raw.get("medianHomeValue"),
            "avg_household_size": raw.get("avgHouseholdSize"),
        },
        "education": {
            "percent_high_school": raw.get("percentHighSchoolOrHigher"),
            "percent_bachelors": raw.get("percentBachelorsOrHigher"),
        },
        "market": {
            "homes_for_sale": raw.get("homesForSale"),
            "inventory_count": raw.get("inventoryCount"),
            "days_on_market": raw.get("medianDaysOnMarket"),
        },
    }
    return {"facts": facts, "extras": extras}


def transform_market_trends(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate a market trends payload.

    Returns:
        Dict with region, trends (including forecasted_appreciation) and
        historical, a list of {"month", "price"} points oldest first
    """
    historical = [
        {"month": point.get("month") or point.get("date"), "price": float(point["price"])}
        for point in raw.get("historical") or []
        if point.get("price") is not None
    ]
    return {
        "region": {
            "id": raw.get("regionId"),
            "name": raw.get("regionName"),
            "type": raw.get("regionType"),
        },
        "trends": {
            "median_list_price": raw.get("medianListPrice"),
            "median_sale_price": raw.get("medianSalePrice"),
            "price_trend": raw.get("priceTrend"),
            "inventory_count": raw.get("inventoryCount"),
            "inventory_trend": raw.get("inventoryTrend"),
            "days_on_market": raw.get("medianDaysOnMarket"),
            "dom_trend": raw.get("domTrend"),
            "price_per_sqft": raw.get("medianPricePerSqft"),
            "forecasted_appreciation": to_float(raw.get("forecastedAppreciation")),
        },
        "historical": historical,
    }
