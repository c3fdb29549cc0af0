"""Unit tests for the resource kinds package."""

from unittest.mock import MagicMock, patch

import pytest

from identifiers import decode
from kinds.cosmos_gremlin_database import THROUGHPUT, CosmosGremlinDatabaseKind
from kinds.migrate_project import MigrateProjectKind
from kinds.registry import (
    KindRegistry,
    get_registry,
    register_builtin_kinds,
    reset_registry,
)
from remote import RemoteRecord
from state import DesiredConfiguration

GREMLIN_ID = (
    "/subscriptions/0000/resourceGroups/rg1/providers/Microsoft.DocumentDB"
    "/databaseAccounts/acct1/gremlinDatabases/db1"
)


@pytest.fixture(autouse=True)
def clean_registry():
    reset_registry()
    yield
    reset_registry()


def _bad_schema_kind(sample_kind):
    class BadSchemaKind(type(sample_kind)):
        @property
        def name(self):
            return "bad_schema"

        @property
        def schema(self):
            return {"type": "not-a-type"}

    return BadSchemaKind


# ==================== Registry Tests ====================


class TestKindRegistry:
    """Tests for KindRegistry."""

    def test_register_and_get(self, sample_kind):
        registry = KindRegistry()
        registry.register_kind(type(sample_kind))

        assert registry.has_kind("sample_database")
        assert registry.get_kind("sample_database").resource_segment == "databases"
        assert registry.list_kinds() == ["sample_database"]

    def test_get_unknown_kind(self):
        registry = KindRegistry()
        registry.register_kind(MigrateProjectKind)

        with pytest.raises(ValueError, match="Available kinds: migrate_project"):
            registry.get_kind("nonexistent")

    def test_api_versions(self, sample_kind):
        registry = KindRegistry()
        registry.register_kind(MigrateProjectKind)
        registry.register_kind(type(sample_kind))

        assert registry.api_versions() == {"migrateprojects": "2018-02-02"}

    def test_global_registry(self):
        assert get_registry() is get_registry()

    def test_register_builtin_kinds(self):
        with patch("kinds.registry.entry_points", return_value=[]):
            registry = register_builtin_kinds(KindRegistry())

        assert sorted(registry.list_kinds()) == [
            "cosmosdb_gremlin_database",
            "migrate_project",
        ]

    def test_entry_point_kinds(self, sample_kind):
        good = MagicMock()
        good.load.return_value = type(sample_kind)
        broken = MagicMock()
        broken.name = "broken"
        broken.load.side_effect = ImportError("no module named broken")

        with patch("kinds.registry.entry_points", return_value=[good, broken]):
            registry = register_builtin_kinds(KindRegistry())

        assert registry.has_kind("sample_database")
        assert not registry.has_kind("broken")

    def test_invalid_schema_rejected(self, sample_kind):
        registry = KindRegistry()

        with pytest.raises(ValueError, match="invalid schema"):
            registry.register_kind(_bad_schema_kind(sample_kind))

        assert not registry.has_kind("bad_schema")

    def test_entry_point_with_invalid_schema_skipped(self, sample_kind):
        bad = MagicMock()
        bad.name = "bad_schema"
        bad.load.return_value = _bad_schema_kind(sample_kind)

        with patch("kinds.registry.entry_points", return_value=[bad]):
            registry = register_builtin_kinds(KindRegistry())

        assert not registry.has_kind("bad_schema")
        assert registry.has_kind("migrate_project")


# ==================== Gremlin Database Tests ====================


class TestCosmosGremlinDatabaseKind:
    """Tests for CosmosGremlinDatabaseKind."""

    @pytest.fixture
    def kind(self):
        return CosmosGremlinDatabaseKind()

    @pytest.fixture
    def desired(self):
        return DesiredConfiguration(
            name="db1",
            scope={
                "subscription_id": "0000",
                "resource_group_name": "rg1",
                "account_name": "acct1",
            },
            attributes={"throughput": 400},
        )

    def test_locator_for(self, kind, desired):
        assert str(kind.locator_for(desired)) == GREMLIN_ID

    def test_scope_from_locator(self, kind, desired):
        locator = kind.identifier_format.decode(GREMLIN_ID)
        assert kind.scope_from_locator(locator) == desired.scope

    def test_create_payload_includes_throughput(self, kind, desired):
        payload = kind.build_payload(desired, creating=True)
        assert payload["properties"]["options"] == {"throughput": 400}
        assert payload["properties"]["resource"] == {"id": "db1"}

    def test_update_payload_omits_throughput(self, kind, desired):
        payload = kind.build_payload(desired, creating=False)
        assert payload["properties"]["options"] == {}

    def test_throughput_sub_resource(self, kind):
        locator = THROUGHPUT.locator(decode(GREMLIN_ID))
        assert str(locator) == GREMLIN_ID + "/throughputSettings/default"
        assert kind.sub_resource_attributes == ["throughput"]

    def test_map_sub_record(self, kind):
        record = RemoteRecord(
            identifier=GREMLIN_ID + "/throughputSettings/default",
            properties={"properties": {"resource": {"throughput": 400}}},
        )
        assert kind.map_sub_record(THROUGHPUT, record) == 400

    def test_record_name(self, kind):
        record = RemoteRecord(
            identifier=GREMLIN_ID,
            properties={"name": "db1", "properties": {"resource": {"id": "Db1"}}},
        )
        assert kind.record_name(record) == "Db1"


# ==================== Migrate Project Tests ====================


class TestMigrateProjectKind:
    """Tests for MigrateProjectKind."""

    @pytest.fixture
    def kind(self):
        return MigrateProjectKind()

    @pytest.mark.parametrize("name", ["proj1", "Migrate-01", "abc"])
    def test_valid_names(self, kind, name):
        assert kind.validate_name(name) is None

    @pytest.mark.parametrize("name", ["ab", "1project", "proj_1", "a" * 25])
    def test_invalid_names(self, kind, name):
        assert "3 - 24 characters" in kind.validate_name(name)

    def test_payload_and_mapping(self, kind):
        desired = DesiredConfiguration(
            name="proj1",
            scope={"subscription_id": "0000", "resource_group_name": "rg1"},
            attributes={"location": "westeurope", "tags": {"env": "test"}},
        )
        payload = kind.build_payload(desired, creating=True)
        assert payload == {"location": "westeurope", "tags": {"env": "test"}}

        record = RemoteRecord(identifier="/x", properties={"name": "proj1", **payload})
        assert kind.map_record(record) == desired.attributes

    def test_locator_for(self, kind):
        desired = DesiredConfiguration(
            name="proj1",
            scope={"subscription_id": "0000", "resource_group_name": "rg1"},
        )
        assert str(kind.locator_for(desired)) == (
            "/subscriptions/0000/resourceGroups/rg1/providers/Microsoft.Migrate"
            "/migrateprojects/proj1"
        )

    def test_decodes_provider_identifier(self, kind):
        identifier = (
            "/subscriptions/0000/resourceGroups/rg1/providers/Microsoft.Migrate"
            "/migrateprojects/proj1"
        )
        locator = kind.identifier_format.decode(identifier)

        assert locator.resource_name == "proj1"
        assert kind.scope_from_locator(locator) == {
            "subscription_id": "0000",
            "resource_group_name": "rg1",
        }
