"""
ESR (Equality, Sort, Range) compound index recommendation.

Given a query's filter and sort, proposes a compound index key order:
1. Equality fields, in filter order
2. Sort fields not already placed, in sort order (direction preserved)
3. Range fields ($gt/$gte/$lt/$lte) not already placed, in filter order

A field appears once, at the earliest phase it qualifies for. A predicate
carrying both $eq and a range operator counts as equality.

The output is a proposal, not an executable index: creating it is the
caller's decision.

Usage:
    recommend({"status": "confirmed", "checkInDate": {"$gte": "2024-01-01"}},
              {"createdAt": -1})
    # -> ["status", "createdAt", "checkInDate"]
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping

RANGE_OPERATORS = frozenset({"$gt", "$gte", "$lt", "$lte"})


class Phase(str, Enum):
    """Which ESR phase placed a field."""

    EQUALITY = "equality"
    SORT = "sort"
    RANGE = "range"


@dataclass(frozen=True)
class KeyField:
    """One field of a suggested compound index."""

    name: str
    direction: Any
    phase: Phase


@dataclass(frozen=True)
class IndexSuggestion:
    """
    ESR-ordered compound index proposal.

    Attributes:
        fields: Ordered key fields with direction and placing phase
    """

    fields: tuple[KeyField, ...] = ()

    @property
    def key_order(self) -> list[str]:
        return [f.name for f in self.fields]

    @property
    def key_pattern(self) -> list[tuple[str, Any]]:
        return [(f.name, f.direction) for f in self.fields]

    @property
    def is_empty(self) -> bool:
        return not self.fields

    def format_keys(self) -> str:
        """Shell form, e.g. '{ status: 1, createdAt: -1, checkInDate: 1 }'."""
        return "{ " + ", ".join(f"{f.name}: {f.direction}" for f in self.fields) + " }"

    def shell_command(self, collection: str) -> str:
        """Ready-to-review mongosh command."""
        return f"db.{collection}.createIndex({self.format_keys()})"


def _operators(predicate: Any) -> set[str]:
    if not isinstance(predicate, Mapping):
        return set()
    return {key for key in predicate if isinstance(key, str) and key.startswith("$")}


def is_equality(predicate: Any) -> bool:
    """
    Direct equality: a plain value, an embedded-document match (mapping
    without operators), or any operator mapping that includes $eq.
    """
    if not isinstance(predicate, Mapping):
        return True
    operators = _operators(predicate)
    return not operators or "$eq" in operators


def is_range(predicate: Any) -> bool:
    """Uses at least one of $gt/$gte/$lt/$lte."""
    return bool(_operators(predicate) & RANGE_OPERATORS)


def recommend_index(
    filter: Mapping[str, Any] | None,
    sort: Mapping[str, Any] | None,
) -> IndexSuggestion:
    """
    Derive the ESR-ordered compound index for a filter/sort shape.

    Top-level operators ($and, $or, $expr, ...) and fields using only
    non-ESR operators ($in, $ne, $regex, $exists, ...) are not placed.
    Equality and range fields are proposed ascending.
    """
    filter = filter or {}
    sort = sort or {}

    placed: dict[str, KeyField] = {}

    def place(name: str, direction: Any, phase: Phase) -> None:
        if name not in placed:
            placed[name] = KeyField(name=name, direction=direction, phase=phase)

    for name, predicate in filter.items():
        if name.startswith("$"):
            continue
        if is_equality(predicate):
            place(name, 1, Phase.EQUALITY)

    for name, direction in sort.items():
        place(name, direction, Phase.SORT)

    for name, predicate in filter.items():
        if name.startswith("$"):
            continue
        if is_range(predicate):
            place(name, 1, Phase.RANGE)

    return IndexSuggestion(fields=tuple(placed.values()))


def recommend(
    filter: Mapping[str, Any] | None,
    sort: Mapping[str, Any] | None,
) -> list[str]:
    """
    ESR key order as field names only.

    Returns [] when there is nothing to index; treat that as "no
    actionable recommendation", not an error.
    """
    return recommend_index(filter, sort).key_order
