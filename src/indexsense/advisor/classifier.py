"""
Slow Query Classifier - turns completed-query telemetry into advisories.

Duration bands (strict lower bounds):
- duration > high threshold (1000ms)  -> HIGH, with an ESR key order
- duration > medium threshold (500ms) -> MEDIUM, generic advisory
- otherwise                           -> nothing

Each record is classified on its own; output order follows input order and
nothing is deduplicated.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable

from indexsense.advisor.esr import recommend_index
from indexsense.models import Recommendation, Severity, SlowQueryRecord

logger = logging.getLogger(__name__)

DEFAULT_HIGH_SEVERITY_MS = 1000
DEFAULT_MEDIUM_SEVERITY_MS = 500

GENERIC_ADVICE = "Consider adding compound index or optimizing query structure"


def severity_for(
    duration_ms: int,
    high_ms: int = DEFAULT_HIGH_SEVERITY_MS,
    medium_ms: int = DEFAULT_MEDIUM_SEVERITY_MS,
) -> Severity | None:
    """Severity band for a completed query, or None below the medium band."""
    if duration_ms > high_ms:
        return Severity.HIGH
    if duration_ms > medium_ms:
        return Severity.MEDIUM
    return None


def _high(record: SlowQueryRecord) -> Recommendation:
    suggestion = recommend_index(record.filter, record.sort)
    if suggestion.is_empty:
        rationale = "No equality, sort or range fields to index; review the query shape"
    else:
        rationale = f"Consider creating compound index: {suggestion.format_keys()}"
    return Recommendation(
        severity=Severity.HIGH,
        collection=record.collection,
        duration_ms=record.duration_ms,
        issue=f"Slow query detected ({record.duration_ms}ms)",
        rationale=rationale,
        suggested_key_order=tuple(suggestion.key_order),
        key_pattern=tuple(suggestion.key_pattern),
        filter=dict(record.filter),
        sort=dict(record.sort),
    )


def _medium(record: SlowQueryRecord) -> Recommendation:
    return Recommendation(
        severity=Severity.MEDIUM,
        collection=record.collection,
        duration_ms=record.duration_ms,
        issue=f"Moderately slow query ({record.duration_ms}ms)",
        rationale=GENERIC_ADVICE,
    )


def classify(
    records: Iterable[SlowQueryRecord],
    high_ms: int = DEFAULT_HIGH_SEVERITY_MS,
    medium_ms: int = DEFAULT_MEDIUM_SEVERITY_MS,
) -> list[Recommendation]:
    """Classify completed queries into HIGH/MEDIUM advisories."""
    results: list[Recommendation] = []
    for record in records:
        severity = severity_for(record.duration_ms, high_ms, medium_ms)
        if severity is None:
            continue
        if severity == Severity.HIGH:
            recommendation = _high(record)
            logger.debug(
                "HIGH %s %sms filter=%s sort=%s -> %s",
                record.collection,
                record.duration_ms,
                json.dumps(record.filter, default=str),
                json.dumps(record.sort, default=str),
                recommendation.suggested_key_order,
            )
        else:
            recommendation = _medium(record)
        results.append(recommendation)
    return results
