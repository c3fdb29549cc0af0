"""
Lifecycle state types.

Shared dataclasses passed between the declarative front-end and the
engine: what the user declared, what the engine persisted, and what each
verb hands back.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class LifecyclePhase(Enum):
    """Phases a managed resource moves through within one verb."""

    ABSENT = "absent"
    CREATING = "creating"
    PRESENT = "present"
    UPDATING = "updating"
    DELETING = "deleting"
    FAILED = "failed"


@dataclass
class DesiredConfiguration:
    """User-declared fields for one resource instance."""

    name: str
    scope: Dict[str, str] = field(default_factory=dict)
    attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DesiredConfiguration":
        return cls(
            name=data["name"],
            scope=dict(data.get("scope") or {}),
            attributes=dict(data.get("attributes") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "scope": dict(self.scope),
            "attributes": dict(self.attributes),
        }


@dataclass
class PersistedState:
    """Durable record the caller keeps between reconciliation passes."""

    identifier: str
    schema_version: int = 0
    last_known_attributes: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PersistedState":
        # Records written before versioning existed carry no version tag
        return cls(
            identifier=data["identifier"],
            schema_version=int(data.get("schema_version", 0)),
            last_known_attributes=dict(data.get("last_known_attributes") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "identifier": self.identifier,
            "schema_version": self.schema_version,
            "last_known_attributes": dict(self.last_known_attributes),
        }


@dataclass
class ReadResult:
    """
    Result of a Read.

    When present is False the remote object is gone and the caller must
    drop its local record; state and observed are None in that case.
    """

    present: bool
    state: Optional[PersistedState] = None
    observed: Optional[DesiredConfiguration] = None


@dataclass
class UpdateResult:
    """Result of an Update: refreshed state plus any partial-success warnings."""

    state: PersistedState
    observed: Optional[DesiredConfiguration] = None
    warnings: List[Exception] = field(default_factory=list)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)
