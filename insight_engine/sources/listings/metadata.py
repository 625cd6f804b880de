"""
Listings (MLS / RESO Web API) metadata utilities.

Handles:
- OData $filter construction from search criteria
- Translating RESO Property records into common facts/extras
- Market statistics over a set of listings
- Comparable extraction from sold listings
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from insight_engine.core.api_registry import ServiceName
from insight_engine.core.schemas import Comparable

logger = logging.getLogger(__name__)


SEARCH_SELECT_FIELDS = [
    "ListingId",
    "UnparsedAddress",
    "City",
    "StateOrProvince",
    "PostalCode",
    "ListPrice",
    "BedroomsTotal",
    "BathroomsTotalInteger",
    "LivingArea",
    "PropertyType",
    "StandardStatus",
    "DaysOnMarket",
    "ListingContractDate",
    "CloseDate",
    "ClosePrice",
    "YearBuilt",
    "Latitude",
    "Longitude",
]

PRICE_RANGES = [
    (0, 500_000, "Under $500K"),
    (500_000, 1_000_000, "$500K-$1M"),
    (1_000_000, 2_000_000, "$1M-$2M"),
    (2_000_000, 5_000_000, "$2M-$5M"),
    (5_000_000, float("inf"), "$5M+"),
]

# Rough conversion for the geo bounding box
MILES_PER_DEGREE = 69.0


def odata_literal(value: Any) -> str:
    """Quote a string for an OData filter, doubling embedded quotes."""
    return "'" + str(value).replace("'", "''") + "'"


def build_filter_query(criteria: Dict[str, Any], now: Optional[datetime] = None) -> str:
    """
    Build an OData $filter expression from search criteria.

    Supported criteria keys: address, city, postal_code, min_price,
    max_price, min_bedrooms, max_bedrooms, min_sqft, max_sqft,
    property_type, status, include_status, latitude/longitude/radius,
    days_on_market, sold_within_days.

    Args:
        criteria: Search criteria
        now: Reference time for sold_within_days (defaults to utcnow)

    Returns:
        Filter expression with clauses joined by ' and '
    """
    filters = []

    if criteria.get("address"):
        filters.append(f"UnparsedAddress eq {odata_literal(criteria['address'])}")

    if criteria.get("city"):
        filters.append(f"City eq {odata_literal(criteria['city'])}")

    if criteria.get("postal_code"):
        filters.append(f"PostalCode eq {odata_literal(criteria['postal_code'])}")

    if criteria.get("min_price"):
        filters.append(f"ListPrice ge {criteria['min_price']}")

    if criteria.get("max_price"):
        filters.append(f"ListPrice le {criteria['max_price']}")

    if criteria.get("min_bedrooms"):
        filters.append(f"BedroomsTotal ge {criteria['min_bedrooms']}")

    if criteria.get("max_bedrooms"):
        filters.append(f"BedroomsTotal le {criteria['max_bedrooms']}")

    if criteria.get("min_sqft"):
        filters.append(f"LivingArea ge {criteria['min_sqft']:.0f}")

    if criteria.get("max_sqft"):
        filters.append(f"LivingArea le {criteria['max_sqft']:.0f}")

    if criteria.get("property_type"):
        filters.append(f"PropertyType eq {odata_literal(criteria['property_type'])}")

    if criteria.get("status"):
        filters.append(f"StandardStatus eq {odata_literal(criteria['status'])}")
    elif criteria.get("include_status"):
        status_filters = [
            f"StandardStatus eq {odata_literal(s)}" for s in criteria["include_status"]
        ]
        filters.append(f"({' or '.join(status_filters)})")

    if (
        criteria.get("latitude") is not None
        and criteria.get("longitude") is not None
        and criteria.get("radius")
    ):
        lat = float(criteria["latitude"])
        lon = float(criteria["longitude"])
        radius_degrees = float(criteria["radius"]) / MILES_PER_DEGREE
        filters.append(f"Latitude ge {lat - radius_degrees:.6f}")
        filters.append(f"Latitude le {lat + radius_degrees:.6f}")
        filters.append(f"Longitude ge {lon - radius_degrees:.6f}")
        filters.append(f"Longitude le {lon + radius_degrees:.6f}")

    if criteria.get("days_on_market"):
        filters.append(f"DaysOnMarket le {criteria['days_on_market']}")

    if criteria.get("sold_within_days"):
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(days=criteria["sold_within_days"])
        filters.append(f"CloseDate ge {since.strftime('%Y-%m-%dT%H:%M:%SZ')}")

    return " and ".join(filters)


def _street(raw: Dict[str, Any]) -> Optional[str]:
    if raw.get("UnparsedAddress"):
        return raw["UnparsedAddress"]
    parts = [raw.get("StreetNumber"), raw.get("StreetName"), raw.get("StreetSuffix")]
    street = " ".join(str(p) for p in parts if p)
    return street or None


def transform_listing(raw: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """
    Translate one RESO Property record.

    Args:
        raw: Property record as returned by the listings provider

    Returns:
        Dict with "facts" (shared canonical fields) and "extras"
        (listing-only fields)
    """
    list_price = raw.get("ListPrice")
    living_area = raw.get("LivingArea")
    media = raw.get("Media") or []

    facts = {
        "address": _street(raw),
        "city": raw.get("City"),
        "state": raw.get("StateOrProvince"),
        "zip": raw.get("PostalCode"),
        "county": raw.get("CountyOrParish"),
        "latitude": raw.get("Latitude"),
        "longitude": raw.get("Longitude"),
        "property_type": raw.get("PropertyType"),
        "bedrooms": raw.get("BedroomsTotal"),
        "bathrooms": raw.get("BathroomsTotalInteger"),
        "sqft": living_area,
        "year_built": raw.get("YearBuilt"),
        "price": list_price,
        "status": raw.get("StandardStatus"),
        "days_on_market": raw.get("DaysOnMarket"),
    }

    extras = {
        "listing_id": raw.get("ListingId") or raw.get("ListingKey"),
        "original_price": raw.get("OriginalListPrice"),
        "price_per_sqft": (
            round(list_price / living_area, 2) if list_price and living_area else None
        ),
        "price_change_date": raw.get("PriceChangeTimestamp"),
        "property_sub_type": raw.get("PropertySubType"),
        "lot_size_acres": raw.get("LotSizeAcres"),
        "stories": raw.get("StoriesTotal"),
        "cumulative_days_on_market": raw.get("CumulativeDaysOnMarket"),
        "listing_date": raw.get("ListingContractDate"),
        "status_change_date": raw.get("StatusChangeTimestamp"),
        "close_date": raw.get("CloseDate"),
        "close_price": raw.get("ClosePrice"),
        "features": {
            "cooling": raw.get("Cooling"),
            "heating": raw.get("Heating"),
            "parking": raw.get("ParkingFeatures"),
            "pool": "Pool" in (raw.get("PoolFeatures") or []),
            "fireplace": (raw.get("FireplacesTotal") or 0) > 0,
            "basement": len(raw.get("Basement") or []) > 0,
            "garage": (raw.get("GarageSpaces") or 0) > 0,
            "garage_spaces": raw.get("GarageSpaces"),
        },
        "agent": {
            "name": raw.get("ListAgentFullName"),
            "id": raw.get("ListAgentKey"),
            "email": raw.get("ListAgentEmail"),
            "phone": raw.get("ListAgentDirectPhone"),
        },
        "office": {
            "name": raw.get("ListOfficeName"),
            "id": raw.get("ListOfficeKey"),
            "phone": raw.get("ListOfficePhone"),
        },
        "photos": [
            m["MediaURL"] for m in media if m.get("MediaCategory") == "Photo"
        ],
        "virtual_tour": raw.get("VirtualTourURLUnbranded"),
        "remarks": raw.get("PublicRemarks"),
    }

    return {"facts": facts, "extras": extras}


def parse_search_response(response: Dict[str, Any]) -> Dict[str, Any]:
    """
    Parse an OData search response.

    Returns:
        Dict with listings (translated), total and has_more
    """
    values = response["value"]
    return {
        "listings": [transform_listing(v) for v in values],
        "total": response.get("@odata.count", len(values)),
        "has_more": "@odata.nextLink" in response,
    }


def parse_history_response(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Translate PropertyHistory records into price/status change entries."""
    return [
        {
            "date": record.get("ModificationTimestamp"),
            "type": record.get("ChangeType"),
            "field": record.get("FieldName"),
            "old_value": record.get("PreviousValue"),
            "new_value": record.get("NewValue"),
        }
        for record in response["value"]
    ]


def summarize_market_stats(search: Dict[str, Any]) -> Dict[str, Any]:
    """
    Compute area statistics from a parsed search result.

    Args:
        search: Output of parse_search_response()

    Returns:
        Dict with "facts" and "extras" in the neighborhood record shape
    """
    listings = [l["facts"] for l in search["listings"]]
    prices = sorted(l["price"] for l in listings if l.get("price") is not None)
    days = [l["days_on_market"] for l in listings if l.get("days_on_market") is not None]
    per_sqft = [
        l["price"] / l["sqft"] for l in listings if l.get("price") and l.get("sqft")
    ]

    facts: Dict[str, Any] = {"total_listings": search["total"]}
    price_ranges: Dict[str, int] = {}

    if prices:
        facts["average_price"] = round(sum(prices) / len(prices))
        facts["median_price"] = prices[len(prices) // 2]
        for low, high, label in PRICE_RANGES:
            price_ranges[label] = len([p for p in prices if low <= p < high])
    if days:
        facts["average_days_on_market"] = round(sum(days) / len(days), 1)
    if per_sqft:
        facts["price_per_sqft"] = round(sum(per_sqft) / len(per_sqft), 2)

    return {"facts": facts, "extras": {"price_ranges": price_ranges}}


def listing_to_comparable(listing: Dict[str, Dict[str, Any]], confidence: int) -> Comparable:
    """Turn a translated sold listing into a Comparable."""
    facts = listing["facts"]
    extras = listing["extras"]
    return Comparable(
        address=facts["address"],
        zip=facts.get("zip"),
        source=ServiceName.LISTINGS,
        confidence=confidence,
        price=extras.get("close_price") or facts.get("price"),
        sale_date=extras.get("close_date"),
        bedrooms=facts.get("bedrooms"),
        bathrooms=facts.get("bathrooms"),
        sqft=facts.get("sqft"),
        year_built=facts.get("year_built"),
    )
