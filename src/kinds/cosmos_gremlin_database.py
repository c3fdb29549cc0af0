"""
Cosmos DB Gremlin database kind.

Throughput lives on a separate throughputSettings child. It can only be
changed later if the database was created with an initial throughput.
"""

import logging
from typing import Any, Dict, Optional

from identifiers import ResourceLocator, decode, encode
from kinds.base import ResourceKind, ScopeSegment, SubResource
from remote import RemoteRecord
from state import DesiredConfiguration

logger = logging.getLogger(__name__)

THROUGHPUT = SubResource(
    attribute="throughput",
    segment_type="throughputSettings",
    segment_name="default",
)


def upgrade_v0_to_v1(state: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rewrite v0 identifiers to the v1 layout.

    v0: .../databaseAccounts/{account}/apis/gremlin/databases/{name}
    v1: .../databaseAccounts/{account}/gremlinDatabases/{name}
    """
    locator = decode(state["identifier"])
    scope = list(locator.scope_path)

    if (
        locator.resource_type == "databases"
        and len(scope) >= 1
        and scope[-1] == ("apis", "gremlin")
    ):
        upgraded = ResourceLocator(
            scope_path=tuple(scope[:-1]),
            resource_type="gremlinDatabases",
            resource_name=locator.resource_name,
        )
        new_id = encode(upgraded)
        logger.info(f"Updating ID from {state['identifier']!r} to {new_id!r}")
        state["identifier"] = new_id

    return state


class CosmosGremlinDatabaseKind(ResourceKind):
    """Descriptor for azurerm_cosmosdb_gremlin_database."""

    schema_version = 1
    api_version = "2020-04-01"

    @property
    def name(self) -> str:
        return "cosmosdb_gremlin_database"

    @property
    def scope_segments(self):
        return (
            ScopeSegment("subscriptions", field="subscription_id"),
            ScopeSegment("resourceGroups", field="resource_group_name"),
            ScopeSegment("providers", value="Microsoft.DocumentDB"),
            ScopeSegment("databaseAccounts", field="account_name"),
        )

    @property
    def resource_segment(self) -> str:
        return "gremlinDatabases"

    @property
    def sub_resources(self):
        return (THROUGHPUT,)

    @property
    def state_upgraders(self):
        return {0: upgrade_v0_to_v1}

    @property
    def schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "throughput": {
                    "type": "integer",
                    "minimum": 400,
                    "maximum": 1000000,
                    "multipleOf": 100,
                },
            },
        }

    def build_payload(
        self, desired: DesiredConfiguration, creating: bool
    ) -> Dict[str, Any]:
        options: Dict[str, Any] = {}
        throughput = desired.attributes.get("throughput")
        if creating and throughput is not None:
            options["throughput"] = throughput

        return {
            "properties": {
                "resource": {"id": desired.name},
                "options": options,
            }
        }

    def map_record(self, record: RemoteRecord) -> Dict[str, Any]:
        # Throughput is the only mutable attribute and it lives on a child
        return {}

    def record_name(self, record: RemoteRecord) -> Optional[str]:
        return record.properties.get("properties", {}).get("resource", {}).get("id")
