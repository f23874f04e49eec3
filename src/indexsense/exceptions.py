"""
Package-level exception hierarchy for IndexSense.

All exceptions inherit from IndexSenseError, enabling:
- Catching all IndexSense errors with a single except clause
- Rich context fields for debugging (operation, code, collection, etc.)
- Structured serialization via to_dict() for JSON error responses

Hierarchy:
    IndexSenseError
    ├── CatalogError                 – Invalid or unreadable index catalog
    ├── ConfigurationError           – Invalid configuration
    ├── StoreError                   – A document store call failed
    │   ├── ConnectivityError        – Timeout or unreachable server
    │   ├── ConflictingDefinitionError – Index name/keys clash with a different live index
    │   └── StatisticsUnavailableError – Index or collection statistics could not be read
    └── SnapshotAssemblyError        – One of the snapshot commands failed
"""

from __future__ import annotations

from typing import Any


class IndexSenseError(Exception):
    """
    Base exception for all IndexSense errors.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON error responses."""
        return {
            "error_type": type(self).__name__,
            "message": self.message,
        }


# ── Catalog & Configuration ──────────────────────────────────────────────


class CatalogError(IndexSenseError):
    """
    Invalid index catalog.

    Raised when a catalog file cannot be read or parsed, or when an
    IndexSpec violates a structural rule (empty key pattern, TTL on a
    compound key, duplicate key pattern in one collection, ...).

    Attributes:
        collection: Collection the offending spec belongs to (if known).
        source: Catalog file path (if loaded from disk).
    """

    def __init__(
        self,
        message: str,
        collection: str | None = None,
        source: str | None = None,
    ) -> None:
        self.collection = collection
        self.source = source
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["collection"] = self.collection
        result["source"] = self.source
        return result


class ConfigurationError(IndexSenseError):
    """
    Invalid configuration.

    Attributes:
        config_key: The configuration key that caused the error (if known).
    """

    def __init__(self, message: str, config_key: str | None = None) -> None:
        self.config_key = config_key
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["config_key"] = self.config_key
        return result


# ── Store Errors ─────────────────────────────────────────────────────────


class StoreError(IndexSenseError):
    """
    A call against the document store failed.

    Wraps the driver exception so that callers never have to import
    pymongo to handle failures.

    Attributes:
        operation: Name of the store operation (e.g. "create_index").
        collection: Collection involved, if any.
        code: The store's structured error code, if it reported one.
        original_error: The underlying driver exception.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        collection: str | None = None,
        code: int | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.operation = operation
        self.collection = collection
        self.code = code
        self.original_error = original_error
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["operation"] = self.operation
        result["collection"] = self.collection
        result["code"] = self.code
        if self.original_error is not None:
            result["original_error_type"] = self.original_error.__class__.__name__
        return result


class ConnectivityError(StoreError):
    """
    The store timed out or could not be reached.

    Never retried by IndexSense; retry policy belongs to the caller.
    """
    pass


class ConflictingDefinitionError(StoreError):
    """
    An index with the same name or keys exists with an incompatible shape.

    IndexSense never drops or overwrites the live index.
    """
    pass


class StatisticsUnavailableError(StoreError):
    """
    Index or collection statistics could not be fetched for one collection.

    The usage analyzer records this per collection and continues.
    """
    pass


# ── Snapshot Errors ──────────────────────────────────────────────────────


class SnapshotAssemblyError(IndexSenseError):
    """
    One of the administrative commands behind a snapshot failed.

    Snapshots are all-or-nothing: the fields are cross-referenced in one
    report, so a partial record is never returned.

    Attributes:
        failed_command: The command that failed (currentOp/dbStats/serverStatus).
    """

    def __init__(self, message: str, failed_command: str) -> None:
        self.failed_command = failed_command
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["failed_command"] = self.failed_command
        return result
