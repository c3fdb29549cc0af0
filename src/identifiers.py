"""
Identifier Codec - Encode and decode opaque remote resource identifiers.

An identifier is a '/'-delimited sequence of alternating segment-type and
segment-value tokens, e.g.

    /subscriptions/0000/resourceGroups/rg1/providers/Microsoft.DocumentDB
        /databaseAccounts/acct1/gremlinDatabases/db1

The final pair names the resource itself; every pair before it is scope.
Identifiers are case-preserved and compared by exact string equality.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from errors import MalformedLocator, MissingSegment, UnparseableIdentifier

SEPARATOR = "/"

Segment = Tuple[str, str]


@dataclass(frozen=True)
class ResourceLocator:
    """Structured decomposition of a resource identifier."""

    scope_path: Tuple[Segment, ...]
    resource_type: str
    resource_name: str

    def scope_value(self, segment_type: str) -> str:
        """Return the value of the first scope segment of the given type."""
        for seg_type, seg_value in self.scope_path:
            if seg_type == segment_type:
                return seg_value
        raise KeyError(segment_type)

    def child(self, resource_type: str, resource_name: str) -> "ResourceLocator":
        """Locator of a sub-resource nested directly under this resource."""
        return ResourceLocator(
            scope_path=self.scope_path + ((self.resource_type, self.resource_name),),
            resource_type=resource_type,
            resource_name=resource_name,
        )

    def __str__(self) -> str:
        try:
            return encode(self)
        except MalformedLocator:
            return repr(self)


def _check_token(token: str, what: str) -> None:
    if not token:
        raise MalformedLocator(f"{what} must not be empty")
    if SEPARATOR in token:
        raise MalformedLocator(f"{what} {token!r} must not contain {SEPARATOR!r}")


def encode(locator: ResourceLocator) -> str:
    """
    Encode a locator into its canonical identifier string.

    Raises:
        MalformedLocator: If the scope path is empty or any segment type or
            value (including the resource's own) is empty.
    """
    if not locator.scope_path:
        raise MalformedLocator("scope path must not be empty")

    tokens: List[str] = []
    for seg_type, seg_value in locator.scope_path:
        _check_token(seg_type, "segment type")
        _check_token(seg_value, f"value of segment {seg_type!r}")
        tokens.extend((seg_type, seg_value))

    _check_token(locator.resource_type, "resource type")
    _check_token(locator.resource_name, "resource name")
    tokens.extend((locator.resource_type, locator.resource_name))

    return SEPARATOR + SEPARATOR.join(tokens)


def decode(identifier: str) -> ResourceLocator:
    """
    Decode an identifier without checking it against a particular kind.

    Raises:
        UnparseableIdentifier: If the string does not match the grammar.
    """
    if not isinstance(identifier, str) or not identifier.startswith(SEPARATOR):
        raise UnparseableIdentifier(
            f"identifier {identifier!r} must start with {SEPARATOR!r}",
            target=str(identifier),
        )

    tokens = identifier[len(SEPARATOR) :].split(SEPARATOR)
    if len(tokens) % 2 != 0:
        raise UnparseableIdentifier(
            f"identifier {identifier!r} has an odd number of segments",
            target=identifier,
        )
    if any(not token for token in tokens):
        raise UnparseableIdentifier(
            f"identifier {identifier!r} contains an empty segment",
            target=identifier,
        )

    pairs = [(tokens[i], tokens[i + 1]) for i in range(0, len(tokens), 2)]
    if len(pairs) < 2:
        raise UnparseableIdentifier(
            f"identifier {identifier!r} has no scope segments",
            target=identifier,
        )

    resource_type, resource_name = pairs[-1]
    return ResourceLocator(
        scope_path=tuple(pairs[:-1]),
        resource_type=resource_type,
        resource_name=resource_name,
    )


@dataclass(frozen=True)
class IdentifierFormat:
    """
    The mandatory segment layout of one resource kind's identifiers.

    scope_segments lists the scope segment types in order; resource_segment
    is the type token that precedes the resource name.
    """

    scope_segments: Tuple[str, ...]
    resource_segment: str

    def decode(self, identifier: str) -> ResourceLocator:
        """
        Decode an identifier and check it has exactly this layout.

        Raises:
            MissingSegment: If a mandatory segment type is absent.
            UnparseableIdentifier: If the grammar is violated, segments are
                out of order, or unexpected segments are present.
        """
        locator = decode(identifier)
        expected = list(self.scope_segments) + [self.resource_segment]
        actual = [seg_type for seg_type, _ in locator.scope_path]
        actual.append(locator.resource_type)

        for seg_type in expected:
            if seg_type not in actual:
                raise MissingSegment(seg_type, identifier)

        if actual != expected:
            raise UnparseableIdentifier(
                f"identifier {identifier!r} has segments {actual}, "
                f"expected {expected}",
                target=identifier,
            )

        return locator

    def build(self, scope_values: Sequence[str], resource_name: str) -> ResourceLocator:
        """Build a locator from scope values given in segment order."""
        if len(scope_values) != len(self.scope_segments):
            raise MalformedLocator(
                f"expected {len(self.scope_segments)} scope values, "
                f"got {len(scope_values)}"
            )
        return ResourceLocator(
            scope_path=tuple(zip(self.scope_segments, scope_values)),
            resource_type=self.resource_segment,
            resource_name=resource_name,
        )
