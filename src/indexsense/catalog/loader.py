"""Load and save index catalogs as JSON or YAML."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from indexsense.catalog.models import IndexCatalog
from indexsense.exceptions import CatalogError

logger = logging.getLogger(__name__)

YAML_SUFFIXES = (".yaml", ".yml")


def load_catalog(path: str | Path) -> IndexCatalog:
    """
    Load a catalog file.

    The file holds {version, collections: {name: [{keyPattern, options}]}}.
    YAML and JSON are chosen by file suffix.

    Raises:
        CatalogError: If the file is missing, unparseable, or holds an
            invalid spec.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise CatalogError(f"Cannot read catalog: {e}", source=str(path)) from e

    try:
        if path.suffix in YAML_SUFFIXES:
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (ValueError, yaml.YAMLError) as e:
        raise CatalogError(f"Catalog is not valid {_format_name(path)}: {e}", source=str(path)) from e

    catalog = catalog_from_dict(data, source=str(path))
    logger.debug(
        "Loaded catalog %s version %s (%d indexes over %d collections)",
        path,
        catalog.version,
        len(catalog),
        len(catalog.collection_names),
    )
    return catalog


def catalog_from_dict(data: Any, source: str | None = None) -> IndexCatalog:
    """Build a catalog from its decoded file form."""
    if not isinstance(data, dict):
        raise CatalogError("Catalog must be a mapping", source=source)

    collections = data.get("collections")
    if not isinstance(collections, dict):
        raise CatalogError("Catalog needs a 'collections' mapping", source=source)

    try:
        return IndexCatalog.from_mapping(collections, version=str(data.get("version", "1")))
    except CatalogError as e:
        e.source = source
        raise


def dump_catalog(catalog: IndexCatalog, path: str | Path) -> None:
    """Write a catalog in the same shape load_catalog reads."""
    path = Path(path)
    data = catalog.to_dict()
    if path.suffix in YAML_SUFFIXES:
        text = yaml.safe_dump(data, sort_keys=False, default_flow_style=None)
    else:
        text = json.dumps(data, indent=2) + "\n"
    path.write_text(text, encoding="utf-8")


def _format_name(path: Path) -> str:
    return "YAML" if path.suffix in YAML_SUFFIXES else "JSON"
