"""IndexSense - MongoDB index provisioning and query advisor."""

__version__ = "0.1.0"
__license__ = "MIT"

# Exception hierarchy (import first so other modules can use it)
from indexsense.exceptions import (
    IndexSenseError,
    CatalogError,
    ConfigurationError,
    StoreError,
    ConnectivityError,
    ConflictingDefinitionError,
    StatisticsUnavailableError,
    SnapshotAssemblyError,
)

from indexsense.advisor import (
    IndexSuggestion,
    analyze,
    classify,
    recommend,
    recommend_index,
    snapshot,
)
from indexsense.catalog import (
    DEFAULT_CATALOG,
    IndexCatalog,
    IndexKind,
    IndexOptions,
    IndexSpec,
    load_catalog,
)
from indexsense.config import Config, get_config
from indexsense.db import MongoProbe
from indexsense.engine import AdvisoryService
from indexsense.models import (
    ErrorKind,
    IndexUsage,
    OperationalSnapshot,
    PlannedIndex,
    ProvisioningOutcome,
    ProvisioningStatus,
    Recommendation,
    Severity,
    SlowQueryRecord,
    UsageReport,
)
from indexsense.provisioner import plan_provisioning, provision_all

__all__ = [
    # Exception hierarchy
    "IndexSenseError",
    "CatalogError",
    "ConfigurationError",
    "StoreError",
    "ConnectivityError",
    "ConflictingDefinitionError",
    "StatisticsUnavailableError",
    "SnapshotAssemblyError",
    # Catalog
    "DEFAULT_CATALOG",
    "IndexCatalog",
    "IndexKind",
    "IndexOptions",
    "IndexSpec",
    "load_catalog",
    # Operations
    "provision_all",
    "plan_provisioning",
    "analyze",
    "classify",
    "recommend",
    "recommend_index",
    "snapshot",
    "AdvisoryService",
    "MongoProbe",
    # Models
    "ErrorKind",
    "IndexSuggestion",
    "IndexUsage",
    "OperationalSnapshot",
    "PlannedIndex",
    "ProvisioningOutcome",
    "ProvisioningStatus",
    "Recommendation",
    "Severity",
    "SlowQueryRecord",
    "UsageReport",
    # Configuration
    "Config",
    "get_config",
    # Metadata
    "__version__",
    "__license__",
]
