"""
Tests for the HTTP surface: market data routes, root and health.

The aggregator dependency is overridden with one whose adapters are
stubbed, so no request leaves the process.
"""
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from insight_engine.api.v1.market_data import get_aggregator
from insight_engine.core.api_errors import NotFoundError
from insight_engine.core.api_registry import ServiceName
from insight_engine.core.schemas import Comparable, SourceRecord
from insight_engine.main import app

ADDRESS = {"street": "123 Main St", "city": "Austin", "state": "TX", "zip": "78701"}


@pytest.fixture
def client(clean_env, aggregator, adapters):
    """Test client whose routes use the fixture aggregator."""
    for service, adapter in adapters.items():
        adapter.fetch_property = AsyncMock(
            return_value=SourceRecord(service=service, facts={"price": 500000})
        )
        adapter.fetch_neighborhood = AsyncMock(
            return_value=SourceRecord(service=service, facts={"median_price": 600000})
        )
        adapter.fetch_comparables = AsyncMock(
            return_value=[
                Comparable(
                    address="125 Main St",
                    zip="78701",
                    source=service,
                    confidence=adapter.comparable_confidence,
                )
            ]
        )
    adapters[ServiceName.PUBLIC_RECORDS].fetch_sales = AsyncMock(return_value=[])
    adapters[ServiceName.PUBLIC_RECORDS].fetch_permits = AsyncMock(return_value=[])
    adapters[ServiceName.PUBLIC_RECORDS].fetch_tax_history = AsyncMock(return_value={})
    adapters[ServiceName.VALUATION].fetch_market_trends = AsyncMock(
        return_value={"trends": {"forecasted_appreciation": 2.0}, "historical": []}
    )

    app.dependency_overrides[get_aggregator] = lambda: aggregator
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


class TestPropertyEndpoints:
    """Tests for /api/v1/market-data/property and /history."""

    @pytest.mark.integration
    def test_get_property(self, client):
        response = client.get("/api/v1/market-data/property", params=ADDRESS)

        assert response.status_code == 200
        data = response.json()
        assert data["kind"] == "property"
        assert data["sources"] == ["listings", "public_records", "valuation"]
        assert data["facts"]["price"] == 500000
        assert data["data_quality"]["confidence"] == "High"
        assert len(data["comparables"]) == 1

    @pytest.mark.integration
    def test_provider_failure_still_200(self, client, adapters):
        adapters[ServiceName.VALUATION].fetch_property = AsyncMock(side_effect=NotFoundError())

        response = client.get("/api/v1/market-data/property", params=ADDRESS)

        assert response.status_code == 200
        errors = response.json()["errors"]
        assert errors == [
            {"service": "valuation", "code": "NOT_FOUND", "message": "Requested resource not found."}
        ]

    @pytest.mark.integration
    def test_missing_address_field(self, client):
        params = dict(ADDRESS)
        del params["street"]

        response = client.get("/api/v1/market-data/property", params=params)

        assert response.status_code == 422

    @pytest.mark.integration
    def test_state_must_be_two_letters(self, client):
        response = client.get(
            "/api/v1/market-data/property", params={**ADDRESS, "state": "Texas"}
        )
        assert response.status_code == 422

    @pytest.mark.integration
    def test_history(self, client):
        response = client.get("/api/v1/market-data/history", params=ADDRESS)

        assert response.status_code == 200
        assert response.json() == {"sales": [], "price_changes": [], "permits": []}


class TestMarketEndpoints:
    """Tests for neighborhood, comparables and forecast routes."""

    @pytest.mark.integration
    def test_neighborhood(self, client):
        response = client.get(
            "/api/v1/market-data/neighborhood", params={"neighborhood": "Zilker", "city": "Austin"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["kind"] == "neighborhood"
        assert data["facts"]["median_price"] == 600000
        assert data["reliability"] is None

    @pytest.mark.integration
    def test_comparables_deduplicated(self, client):
        response = client.get(
            "/api/v1/market-data/comparables",
            params={"latitude": 30.27, "longitude": -97.74, "radius": 1},
        )

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["source"] == "listings"
        assert data[0]["confidence"] == 95

    @pytest.mark.integration
    def test_comparables_radius_bounded(self, client):
        response = client.get("/api/v1/market-data/comparables", params={"radius": 11})
        assert response.status_code == 422

    @pytest.mark.integration
    def test_forecast(self, client):
        response = client.get(
            "/api/v1/market-data/forecast", params={"region": "Austin", "months": 3}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["region"] == "Austin"
        assert [p["change_percent"] for p in data["predictions"]] == [2.0, 2.0, 2.0]

    @pytest.mark.integration
    def test_forecast_months_bounded(self, client):
        response = client.get(
            "/api/v1/market-data/forecast", params={"region": "Austin", "months": 25}
        )
        assert response.status_code == 422


class TestMaintenanceEndpoints:

    @pytest.mark.integration
    def test_status(self, client):
        response = client.get("/api/v1/market-data/status")

        assert response.status_code == 200
        data = response.json()
        assert set(data["services"]) == {"listings", "public_records", "valuation"}
        assert data["services"]["listings"]["configured"] is True
        assert "cache" in data

    @pytest.mark.integration
    def test_clear_cache(self, client, cache):
        cache.set("k", "v", 60)

        response = client.delete("/api/v1/market-data/cache")

        assert response.status_code == 200
        assert response.json() == {"cleared": 1}
        assert len(cache) == 0


class TestServiceEndpoints:

    @pytest.mark.integration
    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["sources"] == ["listings", "public_records", "valuation"]

    @pytest.mark.integration
    def test_health_without_credentials_is_degraded(self, client):
        # Health reads the lifespan-built aggregator, which has no credentials
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert set(data["providers"].values()) == {"not_configured"}
