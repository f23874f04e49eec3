"""
Usage Analyzer - index access counters and sizes for every live collection.

Walks all live collections (not only catalog ones: indexes added by hand
show up too), reads $indexStats and collStats, and classifies each index as
used when its access counter is strictly positive.

Counters come from $indexStats and restart at server restart or index
rebuild. "Unused" therefore means "not used since accessesSince", never
"not needed".

A collection whose statistics cannot be read is reported as a flagged
entry (stats_available=False) and the walk continues. Refused statistics
are informational (PARTIAL_STATISTICS_UNAVAILABLE); a timeout or lost
connection stays a hard CONNECTIVITY error.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping

from pymongo.database import Database

from indexsense.catalog.models import IndexCatalog
from indexsense.db.probe import MongoProbe, as_probe
from indexsense.exceptions import ConnectivityError, StoreError
from indexsense.models import ErrorKind, IndexUsage, UsageReport
from indexsense.provisioner import live_signature, spec_signature

logger = logging.getLogger(__name__)

ID_INDEX = "_id_"


def _as_int(value: Any) -> int:
    # Counters arrive as Int64 / float depending on server and driver.
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _is_declared(
    catalog: IndexCatalog | None,
    collection: str,
    index: Mapping[str, Any],
) -> bool | None:
    if catalog is None:
        return None
    if index.get("name") == ID_INDEX:
        return True
    info = index.get("spec") or {"key": index.get("key") or {}}
    signature = live_signature(info)
    return any(spec_signature(spec) == signature for spec in catalog.for_collection(collection))


def _index_usage(
    index: Mapping[str, Any],
    index_sizes: Mapping[str, Any],
    catalog: IndexCatalog | None,
    collection: str,
) -> IndexUsage:
    name = str(index.get("name", ""))
    accesses = index.get("accesses") or {}
    since = accesses.get("since")
    key = index.get("key") or {}
    return IndexUsage(
        name=name,
        access_count=_as_int(accesses.get("ops")),
        key_pattern=dict(key.items()) if isinstance(key, Mapping) else dict(key),
        accesses_since=since if isinstance(since, datetime) else None,
        size_bytes=_as_int(index_sizes[name]) if name in index_sizes else None,
        declared=_is_declared(catalog, collection, index),
    )


def analyze_collection(
    probe: MongoProbe,
    collection: str,
    catalog: IndexCatalog | None = None,
) -> UsageReport:
    """Usage report for one collection; flagged instead of raising on failure."""
    try:
        index_stats = probe.index_stats(collection)
        stats = probe.collection_stats(collection)
    except ConnectivityError as e:
        logger.warning("Statistics for %s timed out or lost connection: %s", collection, e.message)
        return UsageReport(
            collection=collection,
            stats_available=False,
            error_kind=ErrorKind.CONNECTIVITY,
            error=e.message,
        )
    except StoreError as e:
        logger.info("Statistics unavailable for %s: %s", collection, e.message)
        return UsageReport(
            collection=collection,
            stats_available=False,
            error_kind=ErrorKind.PARTIAL_STATISTICS_UNAVAILABLE,
            error=e.message,
        )

    index_sizes = stats.get("indexSizes") or {}
    indexes = tuple(
        _index_usage(index, index_sizes, catalog, collection)
        for index in sorted(index_stats, key=lambda i: str(i.get("name", "")))
    )
    return UsageReport(
        collection=collection,
        document_count=_as_int(stats.get("count")),
        storage_bytes=_as_int(stats.get("storageSize")),
        total_index_bytes=_as_int(stats.get("totalIndexSize")),
        indexes=indexes,
    )


def analyze(
    db: "MongoProbe | Database",
    catalog: IndexCatalog | None = None,
) -> dict[str, UsageReport]:
    """
    Usage reports for every live collection, keyed by collection name.

    Args:
        db: Probe or pymongo Database
        catalog: When given, each index is marked declared/undeclared

    Raises:
        StoreError: If the collection list itself cannot be read.
    """
    probe = as_probe(db)
    reports: dict[str, UsageReport] = {}

    for collection in probe.list_collections():
        reports[collection] = analyze_collection(probe, collection, catalog)

    unavailable = sum(1 for r in reports.values() if not r.stats_available)
    unused = sum(len(r.unused_indexes()) for r in reports.values())
    logger.info(
        "Analyzed %d collections (%d without statistics), %d unused indexes",
        len(reports),
        unavailable,
        unused,
    )
    return reports
