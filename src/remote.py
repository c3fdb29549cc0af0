"""
Remote API Client - Abstract interface to the provider's management API.

The engine never talks HTTP itself. A concrete client (see clients/arm.py)
fetches records, submits mutations and polls long-running operations, and
classifies every provider error as a RemoteError with an ErrorKind.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional, Union

from errors import ErrorKind, RemoteError
from identifiers import ResourceLocator

if TYPE_CHECKING:
    from operations import Deadline

__all__ = [
    "ErrorKind",
    "RemoteError",
    "RemoteRecord",
    "MutationKind",
    "MutationRequest",
    "OperationHandle",
    "OperationState",
    "OperationStatus",
    "SyncResult",
    "RemoteAPIClient",
]


@dataclass
class RemoteRecord:
    """The provider's current representation of a resource."""

    identifier: Optional[str]
    properties: Dict[str, Any] = field(default_factory=dict)


class MutationKind(Enum):
    """Kinds of remote mutation."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass
class MutationRequest:
    """One mutation to submit against a locator."""

    kind: MutationKind
    locator: ResourceLocator
    payload: Dict[str, Any] = field(default_factory=dict)
    api_version: Optional[str] = None


@dataclass
class SyncResult:
    """A mutation the provider completed within the initial response."""

    record: Optional[RemoteRecord] = None


@dataclass
class OperationHandle:
    """
    Reference to one in-flight long-running mutation.

    poll_reference is provider specific (for ARM, the URL to poll).
    Handles are never persisted.
    """

    mutation: MutationRequest
    poll_reference: str
    retry_after: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class OperationState(Enum):
    """Status of a long-running operation as reported by one poll."""

    IN_PROGRESS = "in_progress"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    NOT_FOUND = "not_found"


@dataclass
class OperationStatus:
    """Result of polling an operation once."""

    state: OperationState
    cause: Optional[str] = None
    retry_after: Optional[float] = None

    @property
    def terminal(self) -> bool:
        return self.state != OperationState.IN_PROGRESS


class RemoteAPIClient(ABC):
    """
    Abstract base class for remote API clients.

    All methods raise RemoteError for provider failures. Transient-error
    retry policy, if any, belongs to the implementation.
    """

    @abstractmethod
    async def get(
        self,
        locator: ResourceLocator,
        deadline: Optional["Deadline"] = None,
        api_version: Optional[str] = None,
    ) -> RemoteRecord:
        """
        Fetch the current record for a locator.

        Raises:
            RemoteError: With kind NOT_FOUND when the object does not exist.
        """
        pass

    @abstractmethod
    async def submit(
        self,
        mutation: MutationRequest,
        deadline: Optional["Deadline"] = None,
    ) -> Union[SyncResult, OperationHandle]:
        """
        Submit a mutation.

        Returns:
            SyncResult when the provider completed it immediately, otherwise
            an OperationHandle to poll.
        """
        pass

    @abstractmethod
    async def poll(self, handle: OperationHandle) -> OperationStatus:
        """Check the status of a long-running operation once."""
        pass

    async def close(self) -> None:
        """Release any held connections."""
        return None
