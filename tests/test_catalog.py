"""Tests for the index catalog: models, built-in catalog and file loading."""

import json

import pytest

from indexsense.catalog import (
    DEFAULT_CATALOG,
    IndexCatalog,
    IndexKind,
    IndexSpec,
    catalog_from_dict,
    dump_catalog,
    load_catalog,
)
from indexsense.exceptions import CatalogError


class TestDefaultCatalog:
    """Tests for the built-in storefront catalog."""

    def test_collections_in_order(self):
        assert DEFAULT_CATALOG.collection_names == [
            "trips",
            "accommodations",
            "users",
            "bookings",
            "reviews",
            "wishlists",
            "tripPlans",
            "analytics",
            "cache",
            "sessions",
        ]

    def test_unique_options_are_explicit(self):
        unique = {
            (spec.collection, tuple(spec.fields))
            for spec in DEFAULT_CATALOG.specs()
            if spec.options.unique
        }
        assert unique == {
            ("users", ("email",)),
            ("wishlists", ("user", "itemId", "itemType")),
            ("cache", ("key",)),
        }

    def test_ttl_options_are_explicit(self):
        ttl = [
            (spec.collection, spec.fields, spec.options.ttl_seconds)
            for spec in DEFAULT_CATALOG.specs()
            if spec.options.ttl_seconds is not None
        ]
        assert ttl == [("cache", ["expiresAt"], 0), ("sessions", ["expiresAt"], 0)]

    def test_compound_expires_at_is_not_ttl(self):
        """Field names never imply options."""
        [spec] = [
            s for s in DEFAULT_CATALOG.for_collection("cache")
            if s.fields == ["category", "expiresAt"]
        ]
        assert spec.options.ttl_seconds is None

    def test_special_kinds(self):
        trips = DEFAULT_CATALOG.for_collection("trips")
        assert trips[0].key_pattern == {"location": IndexKind.GEOSPHERE}
        assert sum(1 for spec in trips if spec.is_text) == 1

    def test_unknown_collection(self):
        assert DEFAULT_CATALOG.for_collection("payments") == ()


class TestIndexSpec:
    """Tests for IndexSpec validation and rendering."""

    def test_wire_aliases(self):
        spec = IndexSpec.model_validate({
            "collection": "cache",
            "keyPattern": {"expiresAt": 1},
            "options": {"ttlSeconds": 0},
        })
        assert spec.options.ttl_seconds == 0
        assert spec.options.to_create_kwargs() == {"expireAfterSeconds": 0}
        assert spec.to_dict() == {"keyPattern": {"expiresAt": 1}, "options": {"ttlSeconds": 0}}

    def test_describe(self):
        spec = IndexSpec(collection="trips", key_pattern={"location": "2dsphere", "price": 1})
        assert spec.describe() == "{ location: '2dsphere', price: 1 }"
        assert spec.keys() == [("location", "2dsphere"), ("price", 1)]

    @pytest.mark.parametrize(
        "key_pattern, options, message",
        [
            ({}, {}, "must not be empty"),
            ({"a": 1, "b": 1}, {"ttlSeconds": 60}, "single ascending/descending"),
            ({"loc": "2dsphere"}, {"ttlSeconds": 60}, "single ascending/descending"),
            ({"a": "hashed", "b": "hashed"}, {}, "more than one hashed"),
            ({"title": "text"}, {"unique": True}, "cannot be unique"),
        ],
    )
    def test_structural_errors(self, key_pattern, options, message):
        with pytest.raises(CatalogError, match=message):
            IndexSpec(collection="c", key_pattern=key_pattern, options=options)

    def test_unknown_kind_rejected(self):
        with pytest.raises(CatalogError, match="keyPattern"):
            IndexCatalog.from_mapping({"c": [{"keyPattern": {"a": "btree"}}]})

    def test_negative_ttl_rejected(self):
        with pytest.raises(CatalogError):
            IndexCatalog.from_mapping({"c": [{"keyPattern": {"a": 1}, "options": {"ttlSeconds": -1}}]})

    def test_unknown_option_rejected(self):
        with pytest.raises(CatalogError):
            IndexCatalog.from_mapping({"c": [{"keyPattern": {"a": 1}, "options": {"sparse": True}}]})


class TestIndexCatalog:
    """Tests for catalog construction rules."""

    def test_duplicate_key_pattern_rejected(self):
        with pytest.raises(CatalogError, match="declared twice") as exc_info:
            IndexCatalog.from_mapping({"c": [{"keyPattern": {"a": 1}}, {"keyPattern": {"a": 1}}]})
        assert exc_info.value.collection == "c"

    def test_same_fields_different_direction_allowed(self):
        catalog = IndexCatalog.from_mapping({"c": [{"keyPattern": {"a": 1}}, {"keyPattern": {"a": -1}}]})
        assert len(catalog) == 2

    def test_two_text_indexes_rejected(self):
        with pytest.raises(CatalogError, match="at most one text index"):
            IndexCatalog.from_mapping({
                "c": [{"keyPattern": {"a": "text"}}, {"keyPattern": {"b": "text"}}],
            })

    def test_iteration_and_len(self):
        catalog = IndexCatalog.from_mapping({
            "a": [{"keyPattern": {"x": 1}}],
            "b": [{"keyPattern": {"y": 1}}, {"keyPattern": {"z": -1}}],
        })
        assert len(catalog) == 3
        assert [(name, len(specs)) for name, specs in catalog] == [("a", 1), ("b", 2)]
        assert [spec.collection for spec in catalog.specs()] == ["a", "b", "b"]


class TestLoader:
    """Tests for catalog files."""

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "indexes.yaml"
        path.write_text(
            "version: '7'\n"
            "collections:\n"
            "  users:\n"
            "    - keyPattern: {email: 1}\n"
            "      options: {unique: true}\n"
            "  sessions:\n"
            "    - keyPattern: {expiresAt: 1}\n"
            "      options: {ttlSeconds: 0}\n"
        )
        catalog = load_catalog(path)

        assert catalog.version == "7"
        assert catalog.collection_names == ["users", "sessions"]
        assert catalog.for_collection("users")[0].options.unique is True

    @pytest.mark.parametrize("suffix", [".json", ".yaml"])
    def test_dump_then_load_keeps_catalog(self, tmp_path, suffix):
        path = tmp_path / f"catalog{suffix}"
        dump_catalog(DEFAULT_CATALOG, path)
        assert load_catalog(path) == DEFAULT_CATALOG

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogError) as exc_info:
            load_catalog(tmp_path / "nope.json")
        assert exc_info.value.source.endswith("nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(CatalogError, match="not valid JSON"):
            load_catalog(path)

    def test_invalid_spec_carries_source(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"collections": {"c": [{"keyPattern": {}}]}}))
        with pytest.raises(CatalogError) as exc_info:
            load_catalog(path)
        assert exc_info.value.source == str(path)
        assert exc_info.value.to_dict()["collection"] == "c"

    def test_collections_required(self):
        with pytest.raises(CatalogError, match="collections"):
            catalog_from_dict({"version": "1"})
