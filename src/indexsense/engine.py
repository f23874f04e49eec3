"""
AdvisoryService - orchestration layer for IndexSense.

The single entry point for provisioning and advisory runs. The CLI, a
scheduled job, or an admin endpoint should all use this service rather
than wiring catalog, probe and thresholds themselves.

Design principle: Ports & Adapters
- This is the application layer: it binds configuration, the catalog and
  the store probe to the operations
- Operations themselves (provisioner, advisor.*) stay pure functions over
  explicit arguments
- Delivery mechanisms are thin adapters around this

Usage:
    from indexsense.engine import AdvisoryService

    with AdvisoryService.from_config() as service:
        outcomes = service.provision_all()
        reports = service.analyze()
        snap = service.snapshot()

    # No database needed
    advisories = AdvisoryService(probe=None).classify(records)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from indexsense.advisor.classifier import classify
from indexsense.advisor.monitor import snapshot
from indexsense.advisor.usage import analyze
from indexsense.catalog.default import DEFAULT_CATALOG
from indexsense.catalog.loader import load_catalog
from indexsense.catalog.models import IndexCatalog
from indexsense.config import Config, get_config
from indexsense.db.probe import MongoProbe
from indexsense.exceptions import ConfigurationError
from indexsense.models import (
    OperationalSnapshot,
    PlannedIndex,
    ProvisioningOutcome,
    Recommendation,
    SlowQueryRecord,
    UsageReport,
)
from indexsense.provisioner import plan_provisioning, provision_all, raise_for_failures

logger = logging.getLogger(__name__)


def resolve_catalog(config: Config, catalog_path: str | Path | None = None) -> IndexCatalog:
    """Explicit path, then config.catalog_file, then the built-in catalog."""
    path = catalog_path or config.catalog_file
    if path:
        return load_catalog(path)
    return DEFAULT_CATALOG


class AdvisoryService:
    """
    Binds config, catalog and probe to the advisory operations.

    Args:
        probe: Store probe; None for operations that need no database
        catalog: Desired index set (defaults to the built-in catalog)
        config: Thresholds and timeouts (defaults to get_config())
    """

    def __init__(
        self,
        probe: MongoProbe | None,
        catalog: IndexCatalog | None = None,
        config: Config | None = None,
    ) -> None:
        self.config = config or get_config()
        self.catalog = catalog if catalog is not None else DEFAULT_CATALOG
        self._probe = probe

    @classmethod
    def from_config(
        cls,
        config: Config | None = None,
        catalog_path: str | Path | None = None,
    ) -> "AdvisoryService":
        """Connect using configuration; close() releases the client."""
        config = config or get_config()
        catalog = resolve_catalog(config, catalog_path)
        return cls(MongoProbe.connect(config), catalog=catalog, config=config)

    @property
    def probe(self) -> MongoProbe:
        if self._probe is None:
            raise ConfigurationError("This operation needs a database connection", config_key="mongo_uri")
        return self._probe

    def close(self) -> None:
        if self._probe is not None:
            self._probe.close()

    def __enter__(self) -> "AdvisoryService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- operations --------------------------------------------------------

    def provision_all(self, raise_on_failure: bool = False) -> list[ProvisioningOutcome]:
        """Apply the catalog; optionally raise the first hard failure."""
        logger.info(
            "Provisioning catalog %s (%d indexes) on %s",
            self.catalog.version,
            len(self.catalog),
            self.probe.database_name,
        )
        outcomes = provision_all(self.catalog, self.probe)
        if raise_on_failure:
            raise_for_failures(outcomes)
        return outcomes

    def plan(self) -> list[PlannedIndex]:
        return plan_provisioning(self.catalog, self.probe)

    def analyze(self) -> dict[str, UsageReport]:
        return analyze(self.probe, catalog=self.catalog)

    def classify(self, records: Iterable[SlowQueryRecord]) -> list[Recommendation]:
        return classify(
            records,
            high_ms=self.config.high_severity_ms,
            medium_ms=self.config.medium_severity_ms,
        )

    def snapshot(self) -> OperationalSnapshot:
        return snapshot(self.probe, slow_op_threshold_ms=self.config.slow_op_threshold_ms)
