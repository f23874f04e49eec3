"""
Index Provisioner - applies the catalog to a live database idempotently.

For every spec, in catalog order:
1. Compare against the live index set read once per collection; an
   equivalent index (same keys, same unique flag, same TTL, and none of
   partial filter, sparse, collation, hidden or custom text settings)
   means ALREADY_EXISTS and no create call is issued
2. Otherwise create the index with the options the spec declares
3. Classify any failure explicitly (classify_creation_error):
   - timeout/unreachable          -> FAILED / CONNECTIVITY (never retried)
   - duplicate-style store error  -> re-read the live set; equivalent index
     present means another actor won the race (ALREADY_EXISTS /
     BENIGN_DUPLICATE), otherwise FAILED / CONFLICTING_DEFINITION
   - anything else                -> FAILED / STORE_ERROR

One spec's failure never stops the rest of the catalog.

Usage:
    from indexsense.provisioner import provision_all
    from indexsense.catalog import DEFAULT_CATALOG

    outcomes = provision_all(DEFAULT_CATALOG, probe)
    failed = [o for o in outcomes if o.failed]
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Iterable, Mapping

from pymongo.database import Database

from indexsense.catalog.models import IndexCatalog, IndexKind, IndexSpec
from indexsense.db.probe import MongoProbe, as_probe
from indexsense.exceptions import (
    ConflictingDefinitionError,
    ConnectivityError,
    StoreError,
)
from indexsense.models import ErrorKind, PlannedIndex, ProvisioningOutcome, ProvisioningStatus

logger = logging.getLogger(__name__)

# IndexAlreadyExists, IndexOptionsConflict, IndexKeySpecsConflict, DuplicateKey
DUPLICATE_ERROR_CODES = frozenset({68, 85, 86, 11000})

# A unique build over documents that already hold duplicate values.
DUPLICATE_KEY_CODE = 11000

_TEXT_MARKER = ("$text", "text")

TEXT_DEFAULT_LANGUAGE = "english"
TEXT_LANGUAGE_OVERRIDE = "language"

KeySignature = tuple[tuple[tuple[str, Any], ...], frozenset[str]]


# =============================================================================
# Equivalence
# =============================================================================


def _normalize_direction(value: Any) -> Any:
    # Servers may report 1.0 / -1.0 for btree keys.
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    return value


def spec_signature(spec: IndexSpec) -> KeySignature:
    """Comparable key signature; text fields collapse to one unordered marker."""
    keys: list[tuple[str, Any]] = []
    text_fields: set[str] = set()
    for name, kind in spec.key_pattern.items():
        if kind == IndexKind.TEXT:
            if not text_fields:
                keys.append(_TEXT_MARKER)
            text_fields.add(name)
        else:
            keys.append((name, kind.value))
    return tuple(keys), frozenset(text_fields)


def live_signature(info: Mapping[str, Any]) -> KeySignature:
    """Key signature of an index_information() entry."""
    keys: list[tuple[str, Any]] = []
    raw_key = info.get("key") or []
    # index_information() gives a list of pairs, $indexStats an ordered document.
    pairs = raw_key.items() if isinstance(raw_key, Mapping) else raw_key
    for name, value in pairs:
        if name == "_fts":
            keys.append(_TEXT_MARKER)
        elif name == "_ftsx":
            continue
        else:
            keys.append((name, _normalize_direction(value)))
    weights = info.get("weights") or {}
    return tuple(keys), frozenset(weights)


def option_differences(spec: IndexSpec, info: Mapping[str, Any]) -> list[str]:
    """
    Options on which a live index departs from the spec.

    Catalog specs never declare partial filters, sparseness, collation,
    hidden indexes, custom text weights or text languages, so any of those
    on the live index counts as a difference.
    """
    differences: list[str] = []
    if bool(spec.options.unique) != bool(info.get("unique", False)):
        differences.append("unique")
    live_ttl = info.get("expireAfterSeconds")
    if live_ttl is not None:
        live_ttl = int(live_ttl)
    if spec.options.ttl_seconds != live_ttl:
        differences.append("expireAfterSeconds")

    for option in ("partialFilterExpression", "collation"):
        if info.get(option) is not None:
            differences.append(option)
    for option in ("sparse", "hidden"):
        if info.get(option):
            differences.append(option)

    weights = info.get("weights") or {}
    if any(_normalize_direction(weight) != 1 for weight in weights.values()):
        differences.append("weights")
    if info.get("default_language", TEXT_DEFAULT_LANGUAGE) != TEXT_DEFAULT_LANGUAGE:
        differences.append("default_language")
    if info.get("language_override", TEXT_LANGUAGE_OVERRIDE) != TEXT_LANGUAGE_OVERRIDE:
        differences.append("language_override")
    return differences


def is_equivalent(spec: IndexSpec, info: Mapping[str, Any]) -> bool:
    """Same key pattern and the same options. Names are ignored."""
    if spec_signature(spec) != live_signature(info):
        return False
    return not option_differences(spec, info)


def find_equivalent(spec: IndexSpec, indexes: Mapping[str, Mapping[str, Any]]) -> str | None:
    """Name of a live index equivalent to the spec, if any."""
    for name, info in indexes.items():
        if is_equivalent(spec, info):
            return name
    return None


def default_index_name(spec: IndexSpec) -> str:
    """The name the store generates when none is given (field_dir_field_dir)."""
    return "_".join(f"{name}_{kind.value}" for name, kind in spec.key_pattern.items())


def describe_conflict(
    spec: IndexSpec,
    indexes: Mapping[str, Mapping[str, Any]],
    code: int | None = None,
) -> str:
    """Human-readable reason a spec clashes with the live index set."""
    wanted_name = spec.options.name or default_index_name(spec)
    signature = spec_signature(spec)
    for name, info in indexes.items():
        if name == wanted_name and live_signature(info) != signature:
            return f"index '{name}' already exists with a different key pattern"
        if live_signature(info) == signature:
            differences = ", ".join(option_differences(spec, info))
            return f"index '{name}' has the same keys with different options ({differences})"
    if spec.is_text and any(live_signature(info)[1] for info in indexes.values()):
        return "collection already carries a different text index"
    if code == DUPLICATE_KEY_CODE:
        return "existing documents violate the unique constraint"
    return "store reported a conflicting index definition"


# =============================================================================
# Error classification
# =============================================================================


def is_duplicate_error(error: StoreError) -> bool:
    """
    Whether the store rejected a creation because an index already exists.

    Structured codes decide; the message is consulted only when the store
    reported no code at all.
    """
    if error.code is not None:
        return error.code in DUPLICATE_ERROR_CODES
    return "already exists" in error.message.lower()


def classify_creation_error(
    error: StoreError,
    spec: IndexSpec,
    live_indexes: Mapping[str, Mapping[str, Any]] | None,
) -> tuple[ProvisioningStatus, ErrorKind]:
    """
    Decide BENIGN_DUPLICATE vs CONFLICTING_DEFINITION vs hard failure.

    Args:
        error: The translated store error from create_index
        spec: The spec being provisioned
        live_indexes: Index information re-read after the failure, or None
            when it could not be read
    """
    if isinstance(error, ConnectivityError):
        return ProvisioningStatus.FAILED, ErrorKind.CONNECTIVITY
    if is_duplicate_error(error):
        if live_indexes is not None and find_equivalent(spec, live_indexes) is not None:
            return ProvisioningStatus.ALREADY_EXISTS, ErrorKind.BENIGN_DUPLICATE
        return ProvisioningStatus.FAILED, ErrorKind.CONFLICTING_DEFINITION
    return ProvisioningStatus.FAILED, ErrorKind.STORE_ERROR


# =============================================================================
# Provisioning
# =============================================================================


def _read_indexes(probe: MongoProbe, collection: str) -> dict[str, dict[str, Any]] | None:
    try:
        return probe.index_information(collection)
    except StoreError as e:
        logger.warning("Could not read indexes of %s, creating blind: %s", collection, e.message)
        return None


def _provision_one(
    probe: MongoProbe,
    spec: IndexSpec,
    live: Mapping[str, Mapping[str, Any]] | None,
) -> ProvisioningOutcome:
    if live is not None:
        existing = find_equivalent(spec, live)
        if existing is not None:
            logger.debug("%s %s already exists as %s", spec.collection, spec.describe(), existing)
            return ProvisioningOutcome(
                spec=spec,
                status=ProvisioningStatus.ALREADY_EXISTS,
                index_name=existing,
            )

    try:
        name = probe.create_index(spec.collection, spec.keys(), **spec.options.to_create_kwargs())
    except StoreError as error:
        return _outcome_for_failure(probe, spec, error)

    logger.info("Created index %s on %s %s", name, spec.collection, spec.describe())
    return ProvisioningOutcome(spec=spec, status=ProvisioningStatus.CREATED, index_name=name)


def _outcome_for_failure(
    probe: MongoProbe,
    spec: IndexSpec,
    error: StoreError,
) -> ProvisioningOutcome:
    live: dict[str, dict[str, Any]] | None = None
    message = error.message

    if not isinstance(error, ConnectivityError) and is_duplicate_error(error):
        try:
            live = probe.index_information(spec.collection)
        except StoreError as reread_error:
            # Could not confirm equivalence: report the re-read failure.
            logger.error(
                "Index %s on %s: %s (re-read failed: %s)",
                spec.describe(),
                spec.collection,
                message,
                reread_error.message,
            )
            kind = (
                ErrorKind.CONNECTIVITY
                if isinstance(reread_error, ConnectivityError)
                else ErrorKind.STORE_ERROR
            )
            return ProvisioningOutcome(
                spec=spec,
                status=ProvisioningStatus.FAILED,
                error_kind=kind,
                error=f"{message}; re-reading indexes failed: {reread_error.message}",
            )

    status, kind = classify_creation_error(error, spec, live)

    if status == ProvisioningStatus.ALREADY_EXISTS:
        existing = find_equivalent(spec, live or {})
        logger.debug(
            "%s %s created concurrently as %s",
            spec.collection,
            spec.describe(),
            existing,
        )
        return ProvisioningOutcome(
            spec=spec,
            status=status,
            index_name=existing,
            error_kind=kind,
        )

    if kind == ErrorKind.CONFLICTING_DEFINITION and live is not None:
        message = f"{describe_conflict(spec, live, error.code)} ({message})"

    logger.error("Failed to create index %s on %s: %s", spec.describe(), spec.collection, message)
    return ProvisioningOutcome(spec=spec, status=status, error_kind=kind, error=message)


def provision_all(
    catalog: IndexCatalog,
    db: "MongoProbe | Database",
) -> list[ProvisioningOutcome]:
    """
    Ensure every catalog index exists.

    Returns exactly one outcome per spec, in catalog order. Never raises
    for per-index failures; inspect outcome.status / outcome.error_kind.
    """
    probe = as_probe(db)
    outcomes: list[ProvisioningOutcome] = []

    for collection, specs in catalog:
        logger.debug("Provisioning %d indexes on %s", len(specs), collection)
        live = _read_indexes(probe, collection)
        for spec in specs:
            outcomes.append(_provision_one(probe, spec, live))

    counts = Counter(outcome.status for outcome in outcomes)
    logger.info(
        "Provisioned %d indexes: %d created, %d already existed, %d failed",
        len(outcomes),
        counts[ProvisioningStatus.CREATED],
        counts[ProvisioningStatus.ALREADY_EXISTS],
        counts[ProvisioningStatus.FAILED],
    )
    return outcomes


def plan_provisioning(
    catalog: IndexCatalog,
    db: "MongoProbe | Database",
) -> list[PlannedIndex]:
    """Report which catalog indexes already exist, without creating any."""
    probe = as_probe(db)
    planned: list[PlannedIndex] = []

    for collection, specs in catalog:
        try:
            live = probe.index_information(collection)
        except StoreError as e:
            planned.extend(PlannedIndex(spec=spec, exists=False, error=e.message) for spec in specs)
            continue
        for spec in specs:
            existing = find_equivalent(spec, live)
            planned.append(PlannedIndex(spec=spec, exists=existing is not None, index_name=existing))

    return planned


def raise_for_failures(outcomes: Iterable[ProvisioningOutcome]) -> None:
    """
    Raise the first hard failure as a typed exception.

    For callers that prefer exceptions over inspecting outcomes.
    """
    for outcome in outcomes:
        if not outcome.failed:
            continue
        message = f"{outcome.spec.collection} {outcome.spec.describe()}: {outcome.error}"
        if outcome.error_kind == ErrorKind.CONFLICTING_DEFINITION:
            raise ConflictingDefinitionError(
                message, operation="createIndexes", collection=outcome.spec.collection
            )
        if outcome.error_kind == ErrorKind.CONNECTIVITY:
            raise ConnectivityError(
                message, operation="createIndexes", collection=outcome.spec.collection
            )
        raise StoreError(message, operation="createIndexes", collection=outcome.spec.collection)
