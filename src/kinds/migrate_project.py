"""Azure Migrate project kind."""

import re
from typing import Any, Dict, Optional

from kinds.base import ResourceKind, ScopeSegment
from remote import RemoteRecord
from state import DesiredConfiguration

NAME_PATTERN = re.compile(r"^[a-zA-Z][-a-z0-9]{2,23}$")


class MigrateProjectKind(ResourceKind):
    """Descriptor for azurerm_migrate_project."""

    api_version = "2018-02-02"

    @property
    def name(self) -> str:
        return "migrate_project"

    @property
    def scope_segments(self):
        return (
            ScopeSegment("subscriptions", field="subscription_id"),
            ScopeSegment("resourceGroups", field="resource_group_name"),
            ScopeSegment("providers", value="Microsoft.Migrate"),
        )

    @property
    def resource_segment(self) -> str:
        return "migrateprojects"

    @property
    def schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "required": ["location"],
            "additionalProperties": False,
            "properties": {
                "location": {"type": "string", "minLength": 1},
                "tags": {
                    "type": "object",
                    "additionalProperties": {"type": "string"},
                },
            },
        }

    def validate_name(self, name: str) -> Optional[str]:
        if not NAME_PATTERN.match(name):
            return (
                "Migrate Project name must be 3 - 24 characters long, start "
                "with a letter, contain only letters, numbers and -."
            )
        return None

    def build_payload(
        self, desired: DesiredConfiguration, creating: bool
    ) -> Dict[str, Any]:
        return {
            "location": desired.attributes.get("location"),
            "tags": dict(desired.attributes.get("tags") or {}),
        }

    def map_record(self, record: RemoteRecord) -> Dict[str, Any]:
        return {
            "location": record.properties.get("location"),
            "tags": dict(record.properties.get("tags") or {}),
        }
