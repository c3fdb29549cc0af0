"""
Resource kinds package.

A resource kind describes one type of remote resource to the generic
reconciler. Third-party kinds are discovered via Python entry points
(group: 'lifecycle.kinds').
"""

from kinds.base import ResourceKind, ScopeSegment, SubResource
from kinds.registry import KindRegistry, get_registry

__all__ = [
    "ResourceKind",
    "ScopeSegment",
    "SubResource",
    "KindRegistry",
    "get_registry",
]
