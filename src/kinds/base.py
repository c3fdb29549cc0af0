"""
Resource Kind Base - Abstract descriptor for one kind of remote resource.

A kind tells the generic Reconciler everything that differs between
resource types: how identifiers are laid out, how a declaration becomes a
request payload, how a remote record maps back to declared fields, which
attributes live on separately managed sub-resources, and how old state
records are upgraded.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from identifiers import IdentifierFormat, ResourceLocator
from migrate import StateMigrator, StateUpgrader
from remote import RemoteRecord
from state import DesiredConfiguration


@dataclass(frozen=True)
class ScopeSegment:
    """
    One scope segment of a kind's identifiers.

    The value comes from the declared scope field named by `field`, or is
    the fixed `value` (e.g. a provider namespace).
    """

    segment_type: str
    field: Optional[str] = None
    value: Optional[str] = None


@dataclass(frozen=True)
class SubResource:
    """
    A mutable attribute stored on a child resource of the main object.

    Such attributes are read and updated through separate calls; the
    child may legitimately not exist (e.g. throughput that was never
    provisioned).
    """

    attribute: str
    segment_type: str
    segment_name: str

    def locator(self, parent: ResourceLocator) -> ResourceLocator:
        return parent.child(self.segment_type, self.segment_name)


class ResourceKind(ABC):
    """
    Abstract base class for resource kind descriptors.

    Kinds are registered with the KindRegistry, either as built-ins or via
    the 'lifecycle.kinds' entry point group.
    """

    #: Version of the persisted state layout this kind writes.
    schema_version: int = 0

    #: API version passed to the provider for this kind.
    api_version: Optional[str] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique kind name (e.g. 'cosmosdb_gremlin_database')."""
        pass

    @property
    @abstractmethod
    def scope_segments(self) -> Tuple[ScopeSegment, ...]:
        """Scope segments of this kind's identifiers, outermost first."""
        pass

    @property
    @abstractmethod
    def resource_segment(self) -> str:
        """Segment type preceding the resource name."""
        pass

    @abstractmethod
    def build_payload(
        self, desired: DesiredConfiguration, creating: bool
    ) -> Dict[str, Any]:
        """
        Build the create/update request body for the main resource.

        Args:
            desired: The declared configuration.
            creating: True for Create, where create-only settings (such as
                initial throughput) may be included.
        """
        pass

    @abstractmethod
    def map_record(self, record: RemoteRecord) -> Dict[str, Any]:
        """Map a remote record of the main resource to declared attributes."""
        pass

    def validate_name(self, name: str) -> Optional[str]:
        """Return an error message if the name is not valid for this kind."""
        return None

    def record_name(self, record: RemoteRecord) -> Optional[str]:
        """Name reported by the remote record; None falls back to the locator."""
        return record.properties.get("name")

    @property
    def sub_resources(self) -> Tuple[SubResource, ...]:
        return ()

    @property
    def state_upgraders(self) -> Mapping[int, StateUpgrader]:
        return {}

    @property
    def schema(self) -> Dict[str, Any]:
        """JSON schema for this kind's declared attributes."""
        return {"type": "object"}

    def build_sub_payload(self, sub: SubResource, value: Any) -> Dict[str, Any]:
        """Request body setting a sub-resource attribute."""
        return {"properties": {"resource": {sub.attribute: value}}}

    def map_sub_record(self, sub: SubResource, record: RemoteRecord) -> Any:
        """Extract a sub-resource attribute value from its remote record."""
        resource = record.properties.get("properties", {}).get("resource", {})
        return resource.get(sub.attribute)

    # Derived helpers

    @property
    def identifier_format(self) -> IdentifierFormat:
        return IdentifierFormat(
            scope_segments=tuple(s.segment_type for s in self.scope_segments),
            resource_segment=self.resource_segment,
        )

    @property
    def sub_resource_attributes(self) -> List[str]:
        return [sub.attribute for sub in self.sub_resources]

    def migrator(self) -> StateMigrator:
        return StateMigrator(self.schema_version, self.state_upgraders)

    def locator_for(self, desired: DesiredConfiguration) -> ResourceLocator:
        """
        Derive the deterministic locator for a declaration.

        Raises:
            KeyError: If a scope field the kind needs was not declared.
        """
        values = []
        for segment in self.scope_segments:
            if segment.value is not None:
                values.append(segment.value)
            else:
                values.append(desired.scope[segment.field])
        return self.identifier_format.build(values, desired.name)

    def scope_from_locator(self, locator: ResourceLocator) -> Dict[str, str]:
        """Recover declared scope fields from a decoded locator."""
        scope = {}
        for segment, (_, seg_value) in zip(self.scope_segments, locator.scope_path):
            if segment.field is not None:
                scope[segment.field] = seg_value
        return scope
