"""
Precedence merge and quality scoring.

Pure functions: the result depends only on which providers answered and
what they said, never on the order their answers arrived in.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from insight_engine.core.api_registry import ServiceName
from insight_engine.core.schemas import (
    AggregatedRecord,
    DataQuality,
    ProviderResult,
    Reliability,
    SourceRecord,
)

logger = logging.getLogger(__name__)


# Earlier wins when two providers supply the same fact
PRECEDENCE: List[ServiceName] = [
    ServiceName.LISTINGS,
    ServiceName.PUBLIC_RECORDS,
    ServiceName.VALUATION,
]

SOURCE_WEIGHTS: Dict[ServiceName, int] = {
    ServiceName.LISTINGS: 40,
    ServiceName.PUBLIC_RECORDS: 35,
    ServiceName.VALUATION: 25,
}

MULTI_SOURCE_BONUS = 10
HIGH_CONFIDENCE_SCORE = 90
MEDIUM_CONFIDENCE_SCORE = 50


def precedence_rank(service: ServiceName) -> int:
    try:
        return PRECEDENCE.index(service)
    except ValueError:
        return len(PRECEDENCE)


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


def calculate_data_quality(services: Iterable[ServiceName]) -> DataQuality:
    """
    Score the set of providers that contributed real data.

    40/35/25 for listings/public records/valuation, +10 for a second
    source and +10 more for a third, capped at 100.
    """
    contributing = {ServiceName(s) for s in services}
    score = sum(SOURCE_WEIGHTS.get(s, 0) for s in contributing)
    if len(contributing) > 1:
        score += MULTI_SOURCE_BONUS
    if len(contributing) > 2:
        score += MULTI_SOURCE_BONUS
    score = min(score, 100)

    if score >= HIGH_CONFIDENCE_SCORE:
        confidence = "High"
    elif score >= MEDIUM_CONFIDENCE_SCORE:
        confidence = "Medium"
    else:
        confidence = "Low"

    return DataQuality(score=score, source_count=len(contributing), confidence=confidence)


def calculate_reliability(
    results: Sequence[ProviderResult],
    fallbacks: Sequence[SourceRecord],
    total: int,
) -> Reliability:
    """
    Summarize how much of a record came from live providers.

    Args:
        results: One result per provider queried
        fallbacks: Fallback records substituted for failed providers
        total: Number of providers queried
    """
    available = len([r for r in results if r.ok])
    errors = len([r for r in results if r.error is not None])
    fallback_count = len(fallbacks)

    if errors >= total:
        level = "low"
    elif fallback_count > 0 or errors > 0:
        level = "medium"
    else:
        level = "high"

    return Reliability(
        level=level,
        available_sources=available,
        fallback_sources=fallback_count,
        errors=errors,
        confidence=max(0, 100 - errors * 20 - fallback_count * 10),
    )


def merge_records(
    kind: str,
    results: Sequence[ProviderResult],
    fallbacks: Sequence[SourceRecord] = (),
    query: Optional[Dict[str, Any]] = None,
) -> AggregatedRecord:
    """
    Merge provider results into one record.

    Real results are applied in precedence order, then fallback records in
    the same order. The first non-empty value for each fact wins and its
    provider is recorded in field_sources. Provider-only fields are kept
    under extras[<service>].

    Args:
        kind: "property" or "neighborhood"
        results: One result per provider queried, in any order
        fallbacks: Fallback records for failed providers
        query: The request parameters, echoed into the record
    """
    real = sorted(
        [r.data for r in results if r.ok], key=lambda rec: precedence_rank(rec.service)
    )
    substitutes = sorted(fallbacks, key=lambda rec: precedence_rank(rec.service))

    facts: Dict[str, Any] = {}
    field_sources: Dict[str, ServiceName] = {}
    extras: Dict[str, Dict[str, Any]] = {}

    for record in real + substitutes:
        for field, value in record.facts.items():
            if _is_empty(value) or field in facts:
                continue
            facts[field] = value
            field_sources[field] = record.service

        namespaced = dict(record.extras)
        if record.is_fallback:
            namespaced["is_fallback"] = True
            namespaced["message"] = record.message
        if namespaced:
            extras[record.service.value] = namespaced

    sources = [rec.service for rec in real]
    errors = sorted(
        [r.error for r in results if r.error is not None],
        key=lambda err: precedence_rank(err.service),
    )

    return AggregatedRecord(
        kind=kind,
        query=query or {},
        facts=facts,
        field_sources=field_sources,
        extras=extras,
        sources=sources,
        fallback_sources=[rec.service for rec in substitutes],
        data_quality=calculate_data_quality(sources),
        errors=errors,
    )
