"""
Result models shared by the provisioner and the advisors.

These models are the output of one advisory run. They're designed to be:
- Immutable (frozen=True): results don't change after creation
- Serializable: to_dict() gives the camelCase wire form used by --json
- Explicit about failure: every per-item failure carries an ErrorKind
  instead of being logged and dropped
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from indexsense.catalog.models import IndexSpec


class ErrorKind(str, Enum):
    """
    Error taxonomy for per-item failures.

    BENIGN_DUPLICATE and PARTIAL_STATISTICS_UNAVAILABLE are informational;
    everything else is a hard error the caller should surface loudly.
    """

    BENIGN_DUPLICATE = "benign_duplicate"
    CONFLICTING_DEFINITION = "conflicting_definition"
    CONNECTIVITY = "connectivity"
    PARTIAL_STATISTICS_UNAVAILABLE = "partial_statistics_unavailable"
    STORE_ERROR = "store_error"

    @property
    def is_informational(self) -> bool:
        return self in (
            ErrorKind.BENIGN_DUPLICATE,
            ErrorKind.PARTIAL_STATISTICS_UNAVAILABLE,
        )


class ProvisioningStatus(str, Enum):
    """Result of ensuring one index exists."""

    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    FAILED = "failed"


class Severity(str, Enum):
    """
    Severity of a completed slow query.

    HIGH: slower than the high threshold, gets a concrete key order
    MEDIUM: slower than the medium threshold, gets a generic advisory
    """

    HIGH = "high"
    MEDIUM = "medium"


# =============================================================================
# Provisioning
# =============================================================================


@dataclass(frozen=True)
class ProvisioningOutcome:
    """
    Outcome of provisioning one IndexSpec.

    Attributes:
        spec: The catalog entry
        status: created / already_exists / failed
        index_name: Name of the live index (when known)
        error_kind: Why the index was not created (None when created)
        error: Store error message for failed outcomes
    """

    spec: "IndexSpec"
    status: ProvisioningStatus
    index_name: str | None = None
    error_kind: ErrorKind | None = None
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.status == ProvisioningStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "collection": self.spec.collection,
            "keyPattern": self.spec.to_dict()["keyPattern"],
            "options": self.spec.options.model_dump(by_alias=True, exclude_none=True),
            "status": self.status.value,
            "indexName": self.index_name,
            "errorKind": self.error_kind.value if self.error_kind else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class PlannedIndex:
    """Whether a catalog spec already has an equivalent live index."""

    spec: "IndexSpec"
    exists: bool
    index_name: str | None = None
    error: str | None = None


# =============================================================================
# Usage analysis
# =============================================================================


@dataclass(frozen=True)
class IndexUsage:
    """
    Access counters for one live index.

    access_count is the $indexStats ops counter: it restarts from zero on
    server restart or index rebuild, so `used` is a point-in-time signal.
    """

    name: str
    access_count: int
    key_pattern: dict[str, Any]
    accesses_since: datetime | None = None
    size_bytes: int | None = None
    declared: bool | None = None

    @property
    def used(self) -> bool:
        return self.access_count > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "accessCount": self.access_count,
            "used": self.used,
            "keyPattern": self.key_pattern,
            "accessesSince": self.accesses_since.isoformat() if self.accesses_since else None,
            "sizeBytes": self.size_bytes,
            "declared": self.declared,
        }


@dataclass(frozen=True)
class UsageReport:
    """Usage and size statistics for one live collection."""

    collection: str
    document_count: int = 0
    storage_bytes: int = 0
    total_index_bytes: int = 0
    indexes: tuple[IndexUsage, ...] = ()
    stats_available: bool = True
    error_kind: ErrorKind | None = None
    error: str | None = None

    def unused_indexes(self) -> list[IndexUsage]:
        """Indexes with no recorded access, excluding the mandatory _id_ index."""
        return [idx for idx in self.indexes if not idx.used and idx.name != "_id_"]

    def to_dict(self) -> dict[str, Any]:
        return {
            "collection": self.collection,
            "documentCount": self.document_count,
            "storageBytes": self.storage_bytes,
            "totalIndexBytes": self.total_index_bytes,
            "indexes": [idx.to_dict() for idx in self.indexes],
            "statsAvailable": self.stats_available,
            "errorKind": self.error_kind.value if self.error_kind else None,
            "error": self.error,
        }


# =============================================================================
# Slow queries
# =============================================================================


class SlowQueryRecord(BaseModel):
    """
    One completed query execution captured by query-duration logging.

    Wire form uses camelCase (durationMs); Python code uses snake_case.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    collection: str
    filter: dict[str, Any] = Field(default_factory=dict)
    sort: dict[str, Any] = Field(default_factory=dict)
    duration_ms: int = Field(..., alias="durationMs", ge=0)

    @classmethod
    def from_profile_entry(cls, entry: Mapping[str, Any]) -> "SlowQueryRecord":
        """
        Build a record from a MongoDB profiler (system.profile) document.

        Reads ns ("db.collection"), millis, and the command's filter and
        sort, falling back to the legacy {"query": {"$query", "$orderby"}}
        shape written by old servers.
        """
        ns = str(entry.get("ns", ""))
        collection = ns.split(".", 1)[1] if "." in ns else ns
        command = entry.get("command") or {}
        query_filter = command.get("filter", command.get("q"))
        sort = command.get("sort")
        if query_filter is None:
            legacy = entry.get("query") or {}
            query_filter = legacy.get("$query", legacy)
            sort = sort or legacy.get("$orderby")
        return cls(
            collection=collection,
            filter=dict(query_filter or {}),
            sort=dict(sort or {}),
            duration_ms=int(entry.get("millis", 0)),
        )


@dataclass(frozen=True)
class Recommendation:
    """
    Advisory for one slow query.

    For HIGH severity, suggested_key_order is the ESR-ordered compound index
    proposal and key_pattern carries the direction of each field. For MEDIUM
    severity both are empty and the rationale is generic. Materializing the
    index is always the caller's decision.
    """

    severity: Severity
    collection: str
    duration_ms: int
    issue: str
    rationale: str
    suggested_key_order: tuple[str, ...] = ()
    key_pattern: tuple[tuple[str, Any], ...] = ()
    filter: dict[str, Any] = field(default_factory=dict)
    sort: dict[str, Any] = field(default_factory=dict)

    @property
    def is_actionable(self) -> bool:
        return bool(self.suggested_key_order)

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "collection": self.collection,
            "durationMs": self.duration_ms,
            "issue": self.issue,
            "suggestedKeyOrder": list(self.suggested_key_order),
            "keyPattern": {name: direction for name, direction in self.key_pattern},
            "rationale": self.rationale,
            "filter": self.filter,
            "sort": self.sort,
        }


# =============================================================================
# Operational snapshot
# =============================================================================


@dataclass(frozen=True)
class OperationalSnapshot:
    """Point-in-time operational state assembled from three admin commands."""

    in_flight_op_count: int
    slow_in_flight_ops: tuple[dict[str, Any], ...]
    collections: int
    objects: int
    avg_object_size: float
    data_bytes: int
    storage_bytes: int
    index_count: int
    index_bytes: int
    connections: dict[str, Any]
    memory: dict[str, Any]
    uptime_seconds: float
    sampled_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "inFlightOpCount": self.in_flight_op_count,
            "slowInFlightOps": list(self.slow_in_flight_ops),
            "collections": self.collections,
            "objects": self.objects,
            "avgObjectSize": self.avg_object_size,
            "dataBytes": self.data_bytes,
            "storageBytes": self.storage_bytes,
            "indexCount": self.index_count,
            "indexBytes": self.index_bytes,
            "connections": self.connections,
            "memory": self.memory,
            "uptimeSeconds": self.uptime_seconds,
            "sampledAt": self.sampled_at.isoformat(),
        }
