"""Declarative index catalog: models, built-in catalog, and file loading."""

from indexsense.catalog.default import DEFAULT_CATALOG
from indexsense.catalog.loader import catalog_from_dict, dump_catalog, load_catalog
from indexsense.catalog.models import IndexCatalog, IndexKind, IndexOptions, IndexSpec

__all__ = [
    "DEFAULT_CATALOG",
    "IndexCatalog",
    "IndexKind",
    "IndexOptions",
    "IndexSpec",
    "catalog_from_dict",
    "dump_catalog",
    "load_catalog",
]
