"""
Static default data substituted when a provider cannot be reached.

Each default has exactly the shape a real result of the same kind has, plus
is_fallback=True and a message naming the unavailable provider.
"""
import copy
import logging
from typing import Any, Dict, Optional

from insight_engine.core.api_registry import ServiceName
from insight_engine.core.schemas import SourceRecord

logger = logging.getLogger(__name__)


FALLBACK_DATA: Dict[str, Dict[str, Any]] = {
    "property": {
        "facts": {},
        "extras": {},
    },
    "market_stats": {
        "facts": {
            "average_price": 850000,
            "median_price": 720000,
            "average_days_on_market": 32,
            "price_per_sqft": 425,
            "months_of_inventory": 2.1,
            "price_change_percent": 3.2,
        },
        "extras": {},
    },
    "demographics": {
        "facts": {},
        "extras": {
            "demographics": {
                "median_income": 85000,
                "median_age": 36,
                "population_density": 2800,
                "percent_owner_occupied": 68,
            },
            "education": {
                "percent_bachelors": 42,
            },
        },
    },
    "forecast": {
        "confidence": 50,
        "price_appreciation": 2.5,
        "factors": ["Market uncertainty", "Limited data available"],
    },
}


def fallback_message(service: str) -> str:
    return f"Using fallback data - {service} service unavailable"


def get_fallback_data(service: str, data_type: str) -> Optional[Dict[str, Any]]:
    """Raw fallback payload for a data type, marked as fallback."""
    fallback = FALLBACK_DATA.get(data_type)
    if fallback is None:
        logger.warning(f"No fallback data available for {service}:{data_type}")
        return None

    data = copy.deepcopy(fallback)
    data["is_fallback"] = True
    data["message"] = fallback_message(service)
    return data


def get_fallback_record(service: ServiceName, data_type: str) -> Optional[SourceRecord]:
    """Fallback payload wrapped as the SourceRecord an adapter would return."""
    data = get_fallback_data(service.value, data_type)
    if data is None:
        return None
    return SourceRecord(
        service=service,
        facts=data["facts"],
        extras=data["extras"],
        is_fallback=True,
        message=data["message"],
    )
