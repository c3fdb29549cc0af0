"""
Engine Errors - Failure taxonomy for the lifecycle engine.

Every error carries the verb that failed and the target it failed on
(the persisted identifier, or the encoded locator when no identifier has
been minted yet) so operators can correlate failures with provider audit
logs.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Classification of a provider error returned by a remote API client."""

    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    TRANSIENT = "transient"
    REJECTED = "rejected"
    UNKNOWN = "unknown"


class RemoteError(Exception):
    """Raised by remote API clients; classified so the engine can react."""

    def __init__(self, kind: ErrorKind, message: str, status: Optional[int] = None):
        self.kind = kind
        self.message = message
        self.status = status
        super().__init__(message)

    @property
    def not_found(self) -> bool:
        return self.kind == ErrorKind.NOT_FOUND

    def __str__(self) -> str:
        if self.status is not None:
            return f"{self.message} (HTTP {self.status})"
        return self.message


class EngineError(Exception):
    """Base class for all lifecycle engine errors."""

    def __init__(
        self,
        message: str,
        verb: Optional[str] = None,
        target: Optional[str] = None,
    ):
        self.message = message
        self.verb = verb
        self.target = target
        super().__init__(message)

    def bind(self, verb: str, target: Optional[str]) -> "EngineError":
        """Attach verb/target context without overwriting existing context."""
        if self.verb is None:
            self.verb = verb
        if self.target is None:
            self.target = target
        return self

    def __str__(self) -> str:
        if self.verb and self.target:
            return f"{self.verb} {self.target}: {self.message}"
        if self.verb:
            return f"{self.verb}: {self.message}"
        return self.message


class MalformedLocator(EngineError):
    """Raised when a locator cannot be encoded into an identifier."""


class UnparseableIdentifier(EngineError):
    """Raised when an identifier string does not match the segment grammar."""


class MissingSegment(UnparseableIdentifier):
    """Raised when a mandatory segment type is absent from an identifier."""

    def __init__(self, segment_type: str, identifier: str):
        self.segment_type = segment_type
        super().__init__(
            f"identifier {identifier!r} is missing segment {segment_type!r}",
            target=identifier,
        )


class UnsupportedStateVersion(EngineError):
    """Raised when persisted state declares a version the engine cannot upgrade."""

    def __init__(self, version: int, current_version: int):
        self.version = version
        self.current_version = current_version
        super().__init__(
            f"state schema version {version} is not supported "
            f"(current version is {current_version})"
        )


class AlreadyExists(EngineError):
    """Raised when Create finds the remote object already present."""

    def __init__(self, identifier: str, kind_name: str = "resource"):
        self.identifier = identifier
        super().__init__(
            f"a {kind_name} with ID {identifier!r} already exists - "
            f"to be managed it needs to be imported",
            target=identifier,
        )


class IdentifierUnavailable(EngineError):
    """Raised when the provider reports success but returns no identifier."""


class AttributeNotProvisionable(EngineError):
    """
    An attribute's sub-resource does not exist on the remote side.

    Returned as a warning alongside a successful Update rather than raised.
    """

    def __init__(self, attribute: str, target: str, cause: str = ""):
        self.attribute = attribute
        self.cause = cause
        message = (
            f"cannot set {attribute!r}: the setting was not provisioned when "
            f"the resource was created and cannot be configured later"
        )
        if cause:
            message = f"{message} ({cause})"
        super().__init__(message, verb="update", target=target)


class RequestRejected(EngineError):
    """Raised when the remote API synchronously refuses a request."""

    def __init__(self, cause: str, **kwargs):
        self.cause = cause
        super().__init__(f"request rejected: {cause}", **kwargs)


class OperationFailed(EngineError):
    """Raised when a remote operation reaches a failed terminal state."""

    def __init__(self, cause: str, **kwargs):
        self.cause = cause
        super().__init__(f"remote operation failed: {cause}", **kwargs)


class DeadlineExceeded(EngineError):
    """Raised when a verb does not complete before its deadline."""


class Cancelled(EngineError):
    """Raised when the caller cancels a verb while it waits."""


class TransientRemoteFailure(EngineError):
    """A transient remote failure, passed through for the caller to retry."""

    def __init__(self, cause: str, **kwargs):
        self.cause = cause
        super().__init__(f"transient remote failure: {cause}", **kwargs)


def from_remote_error(err: RemoteError) -> EngineError:
    """
    Translate a classified provider error into an engine error.

    NOT_FOUND has no translation here; callers decide what absence means
    for their verb before falling back to this function.
    """
    if err.kind == ErrorKind.TRANSIENT:
        return TransientRemoteFailure(str(err))
    if err.kind in (ErrorKind.REJECTED, ErrorKind.CONFLICT):
        return RequestRejected(str(err))
    return OperationFailed(str(err))
