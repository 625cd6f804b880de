"""
Unit tests for the provider registry and static fallback data.
"""
import pytest

from insight_engine.core.api_registry import (
    API_REGISTRY,
    CACHE_TTL,
    AuthStyle,
    ServiceName,
    get_all_services,
    get_api_config,
)
from insight_engine.core.fallback import FALLBACK_DATA, get_fallback_data, get_fallback_record


class TestRegistry:

    @pytest.mark.unit
    def test_every_service_registered(self):
        assert set(API_REGISTRY) == set(ServiceName)
        assert get_all_services() == sorted(s.value for s in ServiceName)

    @pytest.mark.unit
    def test_get_api_config(self):
        config = get_api_config("valuation")
        assert config.auth_style == AuthStyle.API_KEY_HEADER
        assert config.credential_key == "valuation_api_key"
        assert config.rate_limits.per_second == 2
        assert config.rate_limits.per_day == 1000

    @pytest.mark.unit
    def test_unknown_service(self):
        with pytest.raises(KeyError) as exc:
            get_api_config("zillow")
        assert "listings" in str(exc.value)

    @pytest.mark.unit
    def test_query_param_services_name_their_param(self):
        for config in API_REGISTRY.values():
            if config.auth_style == AuthStyle.QUERY_PARAM:
                assert config.credential_param

    @pytest.mark.unit
    def test_cache_ttls(self):
        assert CACHE_TTL["listings"] == 300
        assert CACHE_TTL["demographics"] == 86400


class TestFallbackData:

    @pytest.mark.unit
    def test_fallback_is_marked(self):
        data = get_fallback_data("listings", "market_stats")
        assert data["is_fallback"] is True
        assert data["message"] == "Using fallback data - listings service unavailable"
        assert data["facts"]["median_price"] == 720000

    @pytest.mark.unit
    def test_fallback_is_a_copy(self):
        data = get_fallback_data("listings", "market_stats")
        data["facts"]["median_price"] = 1
        assert FALLBACK_DATA["market_stats"]["facts"]["median_price"] == 720000

    @pytest.mark.unit
    def test_unknown_type(self):
        assert get_fallback_data("listings", "schools") is None
        assert get_fallback_record(ServiceName.LISTINGS, "schools") is None

    @pytest.mark.unit
    def test_record_shape(self):
        record = get_fallback_record(ServiceName.VALUATION, "demographics")
        assert record.service == ServiceName.VALUATION
        assert record.is_fallback
        assert record.extras["education"]["percent_bachelors"] == 42
