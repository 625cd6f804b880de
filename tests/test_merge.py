"""
Unit tests for insight_engine/services/merge.py
"""
import itertools

import pytest

from insight_engine.core.api_errors import ErrorCode
from insight_engine.core.api_registry import ServiceName
from insight_engine.core.fallback import get_fallback_record
from insight_engine.core.schemas import ProviderError, ProviderResult, SourceRecord
from insight_engine.services.merge import (
    calculate_data_quality,
    calculate_reliability,
    merge_records,
    precedence_rank,
)

LISTINGS = ServiceName.LISTINGS
PUBLIC_RECORDS = ServiceName.PUBLIC_RECORDS
VALUATION = ServiceName.VALUATION


def ok(service, facts=None, extras=None):
    return ProviderResult(
        service=service,
        data=SourceRecord(service=service, facts=facts or {}, extras=extras or {}),
    )


def failed(service, code=ErrorCode.SERVER_ERROR):
    return ProviderResult(
        service=service,
        error=ProviderError(service=service, code=code, message="boom"),
    )


class TestDataQuality:

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "services,score,confidence",
        [
            ([], 0, "Low"),
            ([VALUATION], 25, "Low"),
            ([LISTINGS], 40, "Low"),
            ([PUBLIC_RECORDS, VALUATION], 70, "Medium"),
            ([LISTINGS, VALUATION], 75, "Medium"),
            ([LISTINGS, PUBLIC_RECORDS], 85, "Medium"),
            ([LISTINGS, PUBLIC_RECORDS, VALUATION], 100, "High"),
        ],
    )
    def test_score_table(self, services, score, confidence):
        quality = calculate_data_quality(services)
        assert quality.score == score
        assert quality.confidence == confidence
        assert quality.source_count == len(services)

    @pytest.mark.unit
    def test_duplicates_count_once(self):
        assert calculate_data_quality([LISTINGS, LISTINGS]).score == 40

    @pytest.mark.unit
    def test_precedence_rank(self):
        assert precedence_rank(LISTINGS) < precedence_rank(PUBLIC_RECORDS) < precedence_rank(VALUATION)
        assert precedence_rank(ServiceName.FRED) == 3


class TestMergeRecords:

    @pytest.mark.unit
    def test_precedence_for_shared_facts(self):
        record = merge_records(
            "property",
            [
                ok(VALUATION, {"price": 505000, "sqft": 2050}, {"estimate": 510000}),
                ok(LISTINGS, {"price": 500000, "bedrooms": 3}),
                ok(PUBLIC_RECORDS, {"sqft": 1980, "year_built": 1995}),
            ],
        )

        assert record.facts == {
            "price": 500000,
            "bedrooms": 3,
            "sqft": 1980,
            "year_built": 1995,
        }
        assert record.field_sources["price"] == LISTINGS
        assert record.field_sources["sqft"] == PUBLIC_RECORDS
        assert record.extras["valuation"]["estimate"] == 510000
        assert record.sources == [LISTINGS, PUBLIC_RECORDS, VALUATION]
        assert record.data_quality.score == 100

    @pytest.mark.unit
    def test_arrival_order_does_not_matter(self):
        results = [
            ok(LISTINGS, {"price": 500000}),
            ok(PUBLIC_RECORDS, {"price": 480000, "zip": "78701"}),
            ok(VALUATION, {"price": 510000, "zip": "78702"}),
        ]
        merged = [
            merge_records("property", list(order)).model_dump()
            for order in itertools.permutations(results)
        ]
        assert all(m == merged[0] for m in merged)

    @pytest.mark.unit
    def test_empty_values_do_not_win(self):
        record = merge_records(
            "property",
            [ok(LISTINGS, {"zip": "", "county": None}), ok(VALUATION, {"zip": "78701"})],
        )
        assert record.facts == {"zip": "78701"}
        assert record.field_sources["zip"] == VALUATION

    @pytest.mark.unit
    def test_errors_recorded_in_precedence_order(self):
        record = merge_records(
            "property",
            [failed(VALUATION), ok(LISTINGS, {"price": 1}), failed(PUBLIC_RECORDS, ErrorCode.NOT_FOUND)],
        )
        assert [e.service for e in record.errors] == [PUBLIC_RECORDS, VALUATION]
        assert record.errors[0].code == ErrorCode.NOT_FOUND
        assert record.sources == [LISTINGS]

    @pytest.mark.unit
    def test_fallback_never_overrides_real_data(self):
        fallback = get_fallback_record(LISTINGS, "market_stats")
        record = merge_records(
            "neighborhood",
            [failed(LISTINGS), ok(VALUATION, {"median_price": 650000, "average_price": 700000})],
            [fallback],
        )

        assert record.facts["average_price"] == 700000
        assert record.field_sources["average_price"] == VALUATION
        assert record.facts["price_per_sqft"] == 425
        assert record.field_sources["price_per_sqft"] == LISTINGS
        assert record.extras["listings"]["is_fallback"] is True
        assert record.fallback_sources == [LISTINGS]
        assert record.sources == [VALUATION]

    @pytest.mark.unit
    def test_fallback_contributes_nothing_to_score(self):
        fallback = get_fallback_record(LISTINGS, "market_stats")
        record = merge_records("neighborhood", [failed(LISTINGS)], [fallback])

        assert record.data_quality.score == 0
        assert record.is_fallback

    @pytest.mark.unit
    def test_no_results(self):
        record = merge_records("property", [], query={"street": "1 A St"})
        assert record.facts == {}
        assert record.sources == []
        assert record.query == {"street": "1 A St"}
        assert record.data_quality.confidence == "Low"
        assert not record.is_fallback


class TestReliability:

    @pytest.mark.unit
    def test_all_ok(self):
        reliability = calculate_reliability([ok(LISTINGS), ok(VALUATION)], [], 2)
        assert reliability.level == "high"
        assert reliability.confidence == 100

    @pytest.mark.unit
    def test_partial_failure_with_fallback(self):
        fallback = get_fallback_record(VALUATION, "demographics")
        reliability = calculate_reliability(
            [ok(LISTINGS), ok(PUBLIC_RECORDS), failed(VALUATION)], [fallback], 3
        )
        assert reliability.level == "medium"
        assert reliability.available_sources == 2
        assert reliability.fallback_sources == 1
        assert reliability.errors == 1
        assert reliability.confidence == 70

    @pytest.mark.unit
    def test_everything_failed(self):
        reliability = calculate_reliability(
            [failed(LISTINGS), failed(PUBLIC_RECORDS), failed(VALUATION)], [], 3
        )
        assert reliability.level == "low"
        assert reliability.confidence == 40
