"""
Shared fixtures: an in-memory stand-in for the pymongo Database surface.

FakeDatabase emulates just enough server behaviour for the provisioner and
advisors: index creation with the real conflict codes (85 for same keys
with a different name or options, 86 for same name with different keys),
$indexStats, collStats, dbStats, currentOp and serverStatus. Failures are
injected as real pymongo exceptions.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Any, Callable

import pytest
from pymongo.errors import OperationFailure

from indexsense.config import reset_config
from indexsense.db.probe import MongoProbe

STATS_SINCE = datetime(2024, 1, 1, tzinfo=timezone.utc)

EXTRA_OPTIONS = ("partialFilterExpression", "sparse", "collation", "hidden")


def _default_name(keys: list[tuple[str, Any]]) -> str:
    return "_".join(f"{name}_{value}" for name, value in keys)


def _stored_key(keys: list[tuple[str, Any]]) -> tuple[list[tuple[str, Any]], dict[str, int]]:
    """Key as the server stores it: text fields become _fts/_ftsx plus weights."""
    stored: list[tuple[str, Any]] = []
    weights: dict[str, int] = {}
    for name, value in keys:
        if value == "text":
            if not weights:
                stored.extend([("_fts", "text"), ("_ftsx", 1)])
            weights[name] = 1
        else:
            stored.append((name, value))
    return stored, weights


class FakeCollection:
    def __init__(self, name: str) -> None:
        self.name = name
        self.indexes: dict[str, dict[str, Any]] = {"_id_": {"v": 2, "key": [("_id", 1)]}}
        self.accesses: dict[str, int] = {}
        self.document_count = 0
        self.create_calls: list[tuple[list[tuple[str, Any]], dict[str, Any]]] = []
        # Failure injection
        self.create_errors: dict[str, Exception] = {}
        self.index_information_error: Exception | None = None
        self.stats_error: Exception | None = None
        self.before_create: Callable[[], None] | None = None

    def add_index(self, name: str, keys: list[tuple[str, Any]], **options: Any) -> None:
        """Put an index in place directly, as another actor would."""
        stored, weights = _stored_key(keys)
        info: dict[str, Any] = {"v": 2, "key": stored}
        if weights:
            info["weights"] = weights
        if options.get("unique"):
            info["unique"] = True
        if options.get("expireAfterSeconds") is not None:
            info["expireAfterSeconds"] = options["expireAfterSeconds"]
        for option in EXTRA_OPTIONS:
            if options.get(option) is not None:
                info[option] = options[option]
        self.indexes[name] = info

    def index_information(self) -> dict[str, dict[str, Any]]:
        if self.index_information_error is not None:
            raise self.index_information_error
        return {name: dict(info) for name, info in self.indexes.items()}

    def create_index(self, keys: list[tuple[str, Any]], maxTimeMS: int | None = None, **kwargs: Any) -> str:
        self.create_calls.append((list(keys), dict(kwargs, maxTimeMS=maxTimeMS)))
        if self.before_create is not None:
            hook, self.before_create = self.before_create, None
            hook()

        name = kwargs.get("name") or _default_name(keys)
        if name in self.create_errors:
            raise self.create_errors.pop(name)

        stored, weights = _stored_key(keys)
        unique = bool(kwargs.get("unique"))
        ttl = kwargs.get("expireAfterSeconds")
        for existing_name, info in self.indexes.items():
            same_keys = info["key"] == stored and info.get("weights", {}) == weights
            same_options = (
                bool(info.get("unique")) == unique
                and info.get("expireAfterSeconds") == ttl
                and all(info.get(option) == kwargs.get(option) for option in EXTRA_OPTIONS)
            )
            if existing_name == name:
                if not same_keys:
                    raise OperationFailure(
                        f"An existing index has the same name as the requested index: {name}",
                        code=86,
                    )
                if same_options:
                    return name
                raise OperationFailure(
                    f"An existing index has the same name but different options: {name}",
                    code=85,
                )
            if same_keys:
                raise OperationFailure(
                    f"Index already exists with a different name: {existing_name}",
                    code=85,
                )

        self.add_index(name, keys, **kwargs)
        return name

    def aggregate(self, pipeline: list[dict[str, Any]], **kwargs: Any) -> list[dict[str, Any]]:
        assert pipeline == [{"$indexStats": {}}]
        if self.stats_error is not None:
            raise self.stats_error
        entries = []
        for name, info in self.indexes.items():
            key = dict(info["key"])
            spec: dict[str, Any] = {"v": 2, "key": key, "name": name}
            if "weights" in info:
                spec["weights"] = info["weights"]
            entries.append({
                "name": name,
                "key": key,
                "host": "localhost:27017",
                "accesses": {"ops": self.accesses.get(name, 0), "since": STATS_SINCE},
                "spec": spec,
            })
        return entries

    def stats(self) -> dict[str, Any]:
        if self.stats_error is not None:
            raise self.stats_error
        index_sizes = {name: 4096 for name in self.indexes}
        return {
            "ns": self.name,
            "count": self.document_count,
            "storageSize": self.document_count * 256,
            "totalIndexSize": sum(index_sizes.values()),
            "indexSizes": index_sizes,
        }


class FakeAdmin:
    def __init__(self, db: "FakeDatabase") -> None:
        self._db = db

    def command(self, name: str, *args: Any, **kwargs: Any) -> dict[str, Any]:
        self._db.raise_if_failing(name)
        if name == "currentOp":
            return {"inprog": list(self._db.in_progress), "ok": 1.0}
        if name == "serverStatus":
            return dict(self._db.server_status)
        raise OperationFailure(f"no such command: '{name}'", code=59)


class FakeClient:
    def __init__(self, db: "FakeDatabase") -> None:
        self.admin = FakeAdmin(db)
        self.closed = False

    def close(self) -> None:
        self.closed = True


class FakeDatabase:
    """Quacks like pymongo.database.Database for the calls MongoProbe makes."""

    def __init__(self, name: str = "travel") -> None:
        self.name = name
        self.client = FakeClient(self)
        self.collections: dict[str, FakeCollection] = {}
        self.command_errors: dict[str, Exception] = {}
        self.list_error: Exception | None = None
        self.in_progress: list[dict[str, Any]] = []
        self.server_status: dict[str, Any] = {
            "connections": {"current": 12, "available": 838848},
            "mem": {"resident": 256, "virtual": 1024},
            "uptime": 3600.0,
            "ok": 1.0,
        }

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    def raise_if_failing(self, command: str) -> None:
        if command in self.command_errors:
            raise self.command_errors[command]

    def list_collection_names(self) -> list[str]:
        if self.list_error is not None:
            raise self.list_error
        return list(self.collections)

    def command(self, name: str, value: Any = None, **kwargs: Any) -> dict[str, Any]:
        self.raise_if_failing(name)
        if name == "collStats":
            return self[value].stats()
        if name == "dbStats":
            colls = [c for n, c in self.collections.items() if not n.startswith("system.")]
            objects = sum(c.document_count for c in colls)
            return {
                "db": self.name,
                "collections": len(colls),
                "objects": objects,
                "avgObjSize": 256.0 if objects else 0.0,
                "dataSize": objects * 256,
                "storageSize": objects * 256,
                "indexes": sum(len(c.indexes) for c in colls),
                "indexSize": sum(len(c.indexes) * 4096 for c in colls),
                "ok": 1.0,
            }
        raise OperationFailure(f"no such command: '{name}'", code=59)


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Isolate every test from INDEXSENSE_* variables and the config cache."""
    for key in list(os.environ):
        if key.startswith("INDEXSENSE_"):
            monkeypatch.delenv(key)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def probe(fake_db: FakeDatabase) -> MongoProbe:
    return MongoProbe(fake_db, max_time_ms=2000)
