"""
Mongo Probe - the single boundary between IndexSense and the document store.

Provides the administrative surface the advisors need:
- list_collections(): Live collection names (system.* excluded)
- index_information(coll): Live index definitions
- create_index(coll, keys, **options): The only mutating call
- index_stats(coll): $indexStats access counters
- collection_stats(coll): collStats sizes and counts
- database_stats() / current_op() / server_status(): Operational state

Safety requirements:
- Time-bounded: client-level socket/selection timeouts plus maxTimeMS on
  aggregations and index builds
- No retries: a timed-out call surfaces as ConnectivityError
- Driver isolation: pymongo exceptions never escape this module; they are
  translated into the IndexSense exception hierarchy and chained

Usage:
    from indexsense.db import MongoProbe

    probe = MongoProbe.connect(get_config())
    names = probe.list_collections()
    stats = probe.index_stats("bookings")
    probe.close()
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, TypeVar

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ExecutionTimeout,
    OperationFailure,
    PyMongoError,
)

from indexsense.config import Config
from indexsense.exceptions import (
    ConfigurationError,
    ConnectivityError,
    StatisticsUnavailableError,
    StoreError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Driver exceptions that mean "the store did not answer in time / at all".
CONNECTIVITY_ERRORS: tuple[type[Exception], ...] = (ConnectionFailure, ExecutionTimeout)


class MongoProbe:
    """
    Thin, time-bounded wrapper around a pymongo Database.

    Accepts any object exposing the pymongo Database surface, which is how
    tests substitute an in-memory store.
    """

    def __init__(
        self,
        db: Database,
        max_time_ms: int = 10000,
        owns_client: bool = False,
    ) -> None:
        self._db = db
        self._max_time_ms = max_time_ms
        self._owns_client = owns_client
        self._calls = 0

    @classmethod
    def connect(cls, config: Config) -> "MongoProbe":
        """
        Open a client from configuration; the probe closes it on close().

        Raises:
            ConfigurationError: If the URI or client options are rejected.
        """
        try:
            client: MongoClient = MongoClient(config.mongo_uri, **config.mongo_client_kwargs())
            db = client[config.database]
        except PyMongoError as e:
            raise ConfigurationError(
                f"Cannot open a MongoDB client: {e}",
                config_key="mongo_uri",
            ) from e
        return cls(db, max_time_ms=config.max_time_ms, owns_client=True)

    @property
    def database_name(self) -> str:
        return self._db.name

    @property
    def calls(self) -> int:
        """Number of store calls issued (successful or not)."""
        return self._calls

    def close(self) -> None:
        if self._owns_client:
            self._db.client.close()

    def __enter__(self) -> "MongoProbe":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- call plumbing -----------------------------------------------------

    def _call(
        self,
        operation: str,
        fn: Callable[[], T],
        collection: str | None = None,
        error_cls: type[StoreError] = StoreError,
    ) -> T:
        """Run one store call, translating driver errors."""
        self._calls += 1
        start = time.perf_counter()
        target = f"{self.database_name}.{collection}" if collection else self.database_name
        try:
            result = fn()
        except CONNECTIVITY_ERRORS as e:
            logger.warning(
                "%s on %s timed out or lost connection after %.0fms: %s",
                operation,
                target,
                (time.perf_counter() - start) * 1000,
                e,
            )
            raise ConnectivityError(
                f"{operation} on {target} failed: {e}",
                operation=operation,
                collection=collection,
                code=getattr(e, "code", None),
                original_error=e,
            ) from e
        except OperationFailure as e:
            raise error_cls(
                f"{operation} on {target} failed: {e}",
                operation=operation,
                collection=collection,
                code=e.code,
                original_error=e,
            ) from e
        except PyMongoError as e:
            raise error_cls(
                f"{operation} on {target} failed: {e}",
                operation=operation,
                collection=collection,
                original_error=e,
            ) from e

        logger.debug(
            "%s on %s took %.1fms",
            operation,
            target,
            (time.perf_counter() - start) * 1000,
        )
        return result

    # -- collections & indexes --------------------------------------------

    def list_collections(self) -> list[str]:
        """Live collection names, sorted, without system collections."""
        names = self._call("listCollections", self._db.list_collection_names)
        return sorted(name for name in names if not name.startswith("system."))

    def index_information(self, collection: str) -> dict[str, dict[str, Any]]:
        """Live index definitions keyed by index name."""
        return self._call(
            "listIndexes",
            lambda: dict(self._db[collection].index_information()),
            collection=collection,
        )

    def create_index(
        self,
        collection: str,
        keys: list[tuple[str, int | str]],
        **options: Any,
    ) -> str:
        """Create one index; returns the index name the store reports."""
        return self._call(
            "createIndexes",
            lambda: self._db[collection].create_index(
                keys, maxTimeMS=self._max_time_ms, **options
            ),
            collection=collection,
        )

    # -- statistics --------------------------------------------------------

    def index_stats(self, collection: str) -> list[dict[str, Any]]:
        """Per-index access counters from the $indexStats stage."""
        return self._call(
            "$indexStats",
            lambda: list(
                self._db[collection].aggregate(
                    [{"$indexStats": {}}], maxTimeMS=self._max_time_ms
                )
            ),
            collection=collection,
            error_cls=StatisticsUnavailableError,
        )

    def collection_stats(self, collection: str) -> dict[str, Any]:
        """collStats output (count, storageSize, indexSizes, ...)."""
        return self._call(
            "collStats",
            lambda: self._db.command("collStats", collection),
            collection=collection,
            error_cls=StatisticsUnavailableError,
        )

    def database_stats(self) -> dict[str, Any]:
        return self._call("dbStats", lambda: self._db.command("dbStats"))

    def current_op(self) -> dict[str, Any]:
        return self._call("currentOp", lambda: self._db.client.admin.command("currentOp"))

    def server_status(self) -> dict[str, Any]:
        return self._call("serverStatus", lambda: self._db.client.admin.command("serverStatus"))


def as_probe(db: "MongoProbe | Database", max_time_ms: int = 10000) -> MongoProbe:
    """Accept either a probe or a raw pymongo Database."""
    if isinstance(db, MongoProbe):
        return db
    return MongoProbe(db, max_time_ms=max_time_ms)
