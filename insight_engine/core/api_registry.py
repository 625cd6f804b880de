"""
Centralized provider configuration registry.

Consolidates all provider-specific settings in one place:
- Default base URLs and the Settings keys that override them
- How each provider expects its credential
- Rate limit ceilings
- Cache TTLs per kind of data

This eliminates magic strings scattered across client files.
"""

from dataclasses import dataclass
from typing import Optional, Dict
from enum import Enum


class ServiceName(str, Enum):
    """Every provider the aggregation layer knows how to talk to."""

    LISTINGS = "listings"
    VALUATION = "valuation"
    PUBLIC_RECORDS = "public_records"
    WALK_SCORE = "walk_score"
    CENSUS = "census"
    FRED = "fred"


class AuthStyle(Enum):
    """How the opaque credential is attached to a request."""

    BEARER = "bearer"
    API_KEY_HEADER = "api_key_header"
    QUERY_PARAM = "query_param"


@dataclass(frozen=True)
class RateLimitConfig:
    """Sliding-window ceilings; None means the window is not enforced."""

    per_second: Optional[int] = None
    per_minute: Optional[int] = None
    per_hour: Optional[int] = None
    per_day: Optional[int] = None


@dataclass
class APIConfig:
    """Configuration for a single external provider."""

    service: ServiceName
    base_url: str
    auth_style: AuthStyle
    base_url_key: Optional[str]  # Key name in Settings overriding base_url
    credential_key: str  # Key name in Settings (e.g., "valuation_api_key")
    rate_limits: RateLimitConfig
    credential_param: Optional[str] = None  # Query parameter name for QUERY_PARAM auth
    notes: Optional[str] = None


# Cache TTLs in seconds
CACHE_TTL: Dict[str, int] = {
    "listings": 300,  # active listings
    "property_details": 3600,
    "market_stats": 1800,
    "demographics": 86400,
    "walk_score": 604800,  # derived walk/transit scores
    "public_records": 86400,
    "economic_data": 3600,
}


# =============================================================================
# API REGISTRY - All provider configurations
# =============================================================================

API_REGISTRY: Dict[ServiceName, APIConfig] = {
    ServiceName.LISTINGS: APIConfig(
        service=ServiceName.LISTINGS,
        base_url="https://api.mlsgrid.com",
        auth_style=AuthStyle.BEARER,
        base_url_key="listings_base_url",
        credential_key="listings_access_token",
        rate_limits=RateLimitConfig(per_minute=60, per_hour=1000, per_day=10000),
        notes="RESO Web API (OData). Primary source for list price and status.",
    ),
    ServiceName.VALUATION: APIConfig(
        service=ServiceName.VALUATION,
        base_url="https://api.bridgedataoutput.com/api/v2",
        auth_style=AuthStyle.API_KEY_HEADER,
        base_url_key="valuation_base_url",
        credential_key="valuation_api_key",
        rate_limits=RateLimitConfig(per_second=2, per_day=1000),
        notes="Automated value estimates, market trends and demographics.",
    ),
    ServiceName.PUBLIC_RECORDS: APIConfig(
        service=ServiceName.PUBLIC_RECORDS,
        base_url="https://api.propertydata.com",
        auth_style=AuthStyle.BEARER,
        base_url_key="public_records_base_url",
        credential_key="public_records_api_key",
        rate_limits=RateLimitConfig(per_minute=30, per_day=5000),
        notes="Assessor, deed, tax and permit records.",
    ),
    ServiceName.WALK_SCORE: APIConfig(
        service=ServiceName.WALK_SCORE,
        base_url="https://api.walkscore.com/score",
        auth_style=AuthStyle.QUERY_PARAM,
        base_url_key=None,
        credential_key="walk_score_api_key",
        credential_param="wsapikey",
        rate_limits=RateLimitConfig(per_day=5000),
    ),
    ServiceName.CENSUS: APIConfig(
        service=ServiceName.CENSUS,
        base_url="https://api.census.gov/data",
        auth_style=AuthStyle.QUERY_PARAM,
        base_url_key=None,
        credential_key="census_api_key",
        credential_param="key",
        rate_limits=RateLimitConfig(per_second=10),
    ),
    ServiceName.FRED: APIConfig(
        service=ServiceName.FRED,
        base_url="https://api.stlouisfed.org/fred",
        auth_style=AuthStyle.QUERY_PARAM,
        base_url_key=None,
        credential_key="fred_api_key",
        credential_param="api_key",
        rate_limits=RateLimitConfig(per_minute=120),
    ),
}


def get_api_config(service: str) -> APIConfig:
    """
    Get provider configuration.

    Args:
        service: Provider name (e.g., 'listings', 'valuation')

    Returns:
        APIConfig for the provider

    Raises:
        KeyError: If the provider is not in the registry
    """
    try:
        return API_REGISTRY[ServiceName(service)]
    except ValueError:
        available = ", ".join(sorted(s.value for s in API_REGISTRY))
        raise KeyError(
            f"Unknown provider: {service}. " f"Available providers: {available}"
        )


def get_all_services() -> list[str]:
    """Get list of all registered providers."""
    return sorted(s.value for s in API_REGISTRY)
