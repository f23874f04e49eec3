"""Tests for the indexsense command line."""

import json

import pytest
from pymongo.errors import InvalidURI, OperationFailure
from typer.testing import CliRunner

from indexsense import __version__
from indexsense.catalog.models import IndexCatalog
from indexsense.cli import main as cli
from indexsense.config import Config
from indexsense.db.probe import MongoProbe
from indexsense.engine import AdvisoryService

runner = CliRunner()


@pytest.fixture
def service_db(fake_db, monkeypatch):
    """Route every connecting command to the in-memory store."""
    catalog = IndexCatalog.from_mapping({
        "users": [{"keyPattern": {"email": 1}, "options": {"unique": True}}],
        "bookings": [{"keyPattern": {"user": 1, "createdAt": -1}}],
    })

    def open_service(uri, database, catalog_file):
        return AdvisoryService(MongoProbe(fake_db), catalog=catalog, config=Config())

    monkeypatch.setattr(cli, "_open_service", open_service)
    return fake_db


class TestVersionAndCatalog:
    def test_version(self):
        result = runner.invoke(cli.app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_catalog_json(self):
        result = runner.invoke(cli.app, ["catalog", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["collections"]["users"][0] == {
            "keyPattern": {"email": 1},
            "options": {"unique": True},
        }

    def test_catalog_from_file(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("collections:\n  x:\n    - keyPattern: {a: 1}\n")
        result = runner.invoke(cli.app, ["catalog", "--catalog", str(path), "--json"])
        assert result.exit_code == 0
        assert list(json.loads(result.stdout)["collections"]) == ["x"]

    def test_bad_catalog_file(self, tmp_path):
        result = runner.invoke(cli.app, ["catalog", "--catalog", str(tmp_path / "missing.json")])
        assert result.exit_code == 1


class TestProvision:
    def test_provision_json(self, service_db):
        result = runner.invoke(cli.app, ["provision", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["summary"] == {"created": 2, "already_exists": 0, "failed": 0}
        assert [o["indexName"] for o in data["outcomes"]] == ["email_1", "user_1_createdAt_-1"]

    def test_rerun_exits_zero(self, service_db):
        runner.invoke(cli.app, ["provision"])
        result = runner.invoke(cli.app, ["provision", "--json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)["summary"]["already_exists"] == 2

    def test_conflict_exits_nonzero(self, service_db):
        service_db["users"].add_index("email_1", [("email", 1)])
        result = runner.invoke(cli.app, ["provision"])
        assert result.exit_code == 1

    def test_malformed_uri_exits_cleanly(self):
        result = runner.invoke(cli.app, ["provision", "--uri", "notauri://x"])

        assert result.exit_code == 1
        assert not isinstance(result.exception, InvalidURI)

    def test_plan(self, service_db):
        result = runner.invoke(cli.app, ["plan"])
        assert result.exit_code == 0
        assert "2 of 2 indexes to create" in result.stdout


class TestAdvisors:
    def test_usage_json(self, service_db):
        service_db["bookings"].accesses = {"_id_": 4}
        result = runner.invoke(cli.app, ["usage", "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        [index] = data["collections"]["bookings"]["indexes"]
        assert index["name"] == "_id_"
        assert index["accessCount"] == 4
        assert "restart" in data["note"]

    def test_classify_records(self, tmp_path):
        path = tmp_path / "slow.json"
        path.write_text(json.dumps([
            {"collection": "bookings", "filter": {"status": "confirmed"}, "sort": {"createdAt": -1}, "durationMs": 1500},
            {"collection": "users", "filter": {"email": "a@b.c"}, "durationMs": 700},
            {"collection": "users", "filter": {"email": "a@b.c"}, "durationMs": 20},
        ]))
        result = runner.invoke(cli.app, ["classify", str(path), "--format", "json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert [r["severity"] for r in data] == ["high", "medium"]
        assert data[0]["suggestedKeyOrder"] == ["status", "createdAt"]

    def test_classify_profile_dump(self, tmp_path):
        path = tmp_path / "profile.json"
        path.write_text(json.dumps([
            {"ns": "travel.trips", "command": {"filter": {"difficulty": "easy"}}, "millis": 1800},
        ]))
        result = runner.invoke(cli.app, ["classify", str(path), "--profile", "--format", "json"])

        assert result.exit_code == 0
        assert json.loads(result.stdout)[0]["collection"] == "trips"

    def test_classify_invalid_file(self, tmp_path):
        path = tmp_path / "slow.json"
        path.write_text('{"not": "a list"}')
        result = runner.invoke(cli.app, ["classify", str(path)])
        assert result.exit_code == 2

    def test_recommend(self):
        result = runner.invoke(cli.app, [
            "recommend",
            "--filter", '{"status": "confirmed", "checkInDate": {"$gte": "2024-01-01"}}',
            "--sort", '{"createdAt": -1}',
            "--collection", "bookings",
        ])

        assert result.exit_code == 0
        assert "db.bookings.createIndex({ status: 1, createdAt: -1, checkInDate: 1 })" in result.stdout

    def test_recommend_nothing_to_index(self):
        result = runner.invoke(cli.app, ["recommend", "--filter", '{"$or": [{"a": 1}]}'])
        assert result.exit_code == 0
        assert "No actionable recommendation" in result.stdout

    def test_recommend_invalid_json(self):
        result = runner.invoke(cli.app, ["recommend", "--filter", "{status"])
        assert result.exit_code == 2

    def test_snapshot_json(self, service_db):
        service_db["bookings"].document_count = 3
        result = runner.invoke(cli.app, ["snapshot", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["collections"] == 1
        assert data["objects"] == 3

    def test_snapshot_failure_exits_nonzero(self, service_db):
        service_db.command_errors["serverStatus"] = OperationFailure("unauthorized", code=13)
        result = runner.invoke(cli.app, ["snapshot"])
        assert result.exit_code == 1
