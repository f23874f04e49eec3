"""
Data models for the index catalog.

An IndexCatalog is the declarative desired state: for each logical
collection, the ordered list of indexes it must carry. It is:
- Immutable: constructed once, passed explicitly to provisioning/analysis
- Self-describing: every IndexSpec carries its own options, nothing is
  inferred from the shape of the key pattern
- Serializable: field names (keyPattern, options.unique, options.ttlSeconds)
  round-trip exactly through JSON/YAML
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterator, Mapping, Sequence

import pymongo
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from indexsense.exceptions import CatalogError


class IndexKind(Enum):
    """Per-field index kind, valued as the MongoDB key value."""

    ASCENDING = pymongo.ASCENDING
    DESCENDING = pymongo.DESCENDING
    GEOSPHERE = pymongo.GEOSPHERE
    TEXT = pymongo.TEXT
    HASHED = pymongo.HASHED

    @property
    def is_btree(self) -> bool:
        """Plain ascending/descending key."""
        return self in (IndexKind.ASCENDING, IndexKind.DESCENDING)


class IndexOptions(BaseModel):
    """Options declared for one index."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    unique: bool | None = Field(default=None, description="Reject duplicate key values")
    ttl_seconds: int | None = Field(
        default=None,
        alias="ttlSeconds",
        ge=0,
        description="Expire documents this many seconds after the indexed timestamp",
    )
    name: str | None = Field(default=None, description="Explicit index name")

    def to_create_kwargs(self) -> dict[str, Any]:
        """Options in the form pymongo's create_index expects."""
        kwargs: dict[str, Any] = {}
        if self.unique:
            kwargs["unique"] = True
        if self.ttl_seconds is not None:
            kwargs["expireAfterSeconds"] = self.ttl_seconds
        if self.name:
            kwargs["name"] = self.name
        return kwargs


class IndexSpec(BaseModel):
    """
    One index required on one collection.

    Attributes:
        collection: Target collection name
        key_pattern: Ordered field -> kind mapping (order defines the
            prefix-matchable index order)
        options: Declared options (unique, TTL, name)
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")

    collection: str = Field(..., min_length=1)
    key_pattern: dict[str, IndexKind] = Field(..., alias="keyPattern")
    options: IndexOptions = Field(default_factory=IndexOptions)

    @model_validator(mode="after")
    def _check_shape(self) -> "IndexSpec":
        if not self.key_pattern:
            raise CatalogError("Index key pattern must not be empty", collection=self.collection)

        kinds = list(self.key_pattern.values())
        label = self.describe()

        if self.options.ttl_seconds is not None:
            if len(kinds) != 1 or not kinds[0].is_btree:
                raise CatalogError(
                    f"TTL index {label} must be a single ascending/descending field",
                    collection=self.collection,
                )

        if kinds.count(IndexKind.HASHED) > 1:
            raise CatalogError(
                f"Index {label} has more than one hashed field",
                collection=self.collection,
            )

        if self.options.unique and any(
            k in (IndexKind.HASHED, IndexKind.TEXT, IndexKind.GEOSPHERE) for k in kinds
        ):
            raise CatalogError(
                f"Index {label} cannot be unique",
                collection=self.collection,
            )

        return self

    @property
    def fields(self) -> list[str]:
        return list(self.key_pattern)

    @property
    def is_text(self) -> bool:
        return IndexKind.TEXT in self.key_pattern.values()

    def keys(self) -> list[tuple[str, int | str]]:
        """Key pattern as the (field, value) list pymongo expects."""
        return [(name, kind.value) for name, kind in self.key_pattern.items()]

    def describe(self) -> str:
        """Shell-style rendering, e.g. '{ user: 1, createdAt: -1 }'."""
        parts = []
        for name, kind in self.key_pattern.items():
            value = kind.value if kind.is_btree else f"'{kind.value}'"
            parts.append(f"{name}: {value}")
        return "{ " + ", ".join(parts) + " }"

    def to_dict(self) -> dict[str, Any]:
        """Wire form without the collection (it is the enclosing key in files)."""
        data: dict[str, Any] = {
            "keyPattern": {name: kind.value for name, kind in self.key_pattern.items()},
        }
        options = self.options.model_dump(by_alias=True, exclude_none=True)
        if options:
            data["options"] = options
        return data


@dataclass(frozen=True)
class IndexCatalog:
    """
    Ordered, immutable mapping of collection name -> index specs.

    Build with IndexCatalog.from_mapping(); iterate to get
    (collection, specs) pairs in declaration order.
    """

    version: str
    entries: tuple[tuple[str, tuple[IndexSpec, ...]], ...] = ()

    def __iter__(self) -> Iterator[tuple[str, tuple[IndexSpec, ...]]]:
        return iter(self.entries)

    def __len__(self) -> int:
        return sum(len(specs) for _, specs in self.entries)

    @property
    def collection_names(self) -> list[str]:
        return [name for name, _ in self.entries]

    def specs(self) -> list[IndexSpec]:
        """All specs, flattened in catalog order."""
        return [spec for _, specs in self.entries for spec in specs]

    def for_collection(self, name: str) -> tuple[IndexSpec, ...]:
        for collection, specs in self.entries:
            if collection == name:
                return specs
        return ()

    @classmethod
    def from_mapping(
        cls,
        collections: Mapping[str, Sequence[Mapping[str, Any]]],
        version: str = "1",
    ) -> "IndexCatalog":
        """
        Build a catalog from {collection: [{keyPattern, options}, ...]}.

        Raises:
            CatalogError: If any spec is malformed, or a collection declares
                the same key pattern twice or more than one text index.
        """
        entries: list[tuple[str, tuple[IndexSpec, ...]]] = []
        for collection, raw_specs in collections.items():
            if not isinstance(raw_specs, Sequence) or isinstance(raw_specs, (str, bytes)):
                raise CatalogError(
                    "Collection entry must be a list of index specs",
                    collection=collection,
                )
            specs = tuple(_build_spec(collection, raw) for raw in raw_specs)
            _check_collection(collection, specs)
            entries.append((collection, specs))
        return cls(version=str(version), entries=tuple(entries))

    def to_dict(self) -> dict[str, Any]:
        """File form: {version, collections: {name: [spec, ...]}}."""
        return {
            "version": self.version,
            "collections": {
                name: [spec.to_dict() for spec in specs] for name, specs in self.entries
            },
        }


def _build_spec(collection: str, raw: Mapping[str, Any]) -> IndexSpec:
    if not isinstance(raw, Mapping):
        raise CatalogError("Index spec must be a mapping", collection=collection)
    try:
        return IndexSpec.model_validate({**raw, "collection": collection})
    except ValidationError as e:
        first = e.errors()[0]
        where = ".".join(str(part) for part in first.get("loc", ()))
        raise CatalogError(
            f"Invalid index spec ({where}): {first.get('msg')}",
            collection=collection,
        ) from e


def _check_collection(collection: str, specs: Sequence[IndexSpec]) -> None:
    seen: set[tuple[tuple[str, int | str], ...]] = set()
    text_indexes = 0
    for spec in specs:
        signature = tuple(spec.keys())
        if signature in seen:
            raise CatalogError(
                f"Key pattern {spec.describe()} declared twice",
                collection=collection,
            )
        seen.add(signature)
        if spec.is_text:
            text_indexes += 1
    if text_indexes > 1:
        raise CatalogError(
            "A collection can carry at most one text index",
            collection=collection,
        )
