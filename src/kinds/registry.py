"""
Kind Registry - Discovery and registration of resource kinds.

This module provides the central registry of resource kind descriptors,
handling built-in registration and entry point discovery.
"""

import logging
from importlib.metadata import entry_points
from typing import Dict, Optional, Type

from kinds.base import ResourceKind
from validation import validate_schema

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "lifecycle.kinds"


class KindRegistry:
    """
    Central registry for resource kinds.

    Kinds are registered by class and instantiated once; descriptors hold
    no per-call state so a single instance serves every reconciliation.
    """

    def __init__(self):
        self._kinds: Dict[str, Type[ResourceKind]] = {}
        self._instances: Dict[str, ResourceKind] = {}

    def register_kind(self, kind_class: Type[ResourceKind]) -> None:
        """
        Register a resource kind class.

        Args:
            kind_class: The ResourceKind subclass to register
        """
        instance = kind_class()
        name = instance.name

        is_valid, error = validate_schema(instance.schema)
        if not is_valid:
            raise ValueError(f"Resource kind {name} has an invalid schema: {error}")

        if name in self._kinds:
            logger.warning(f"Overwriting existing resource kind: {name}")

        self._kinds[name] = kind_class
        self._instances[name] = instance
        logger.info(
            f"Registered resource kind: {name} "
            f"(state schema v{instance.schema_version})"
        )

    def get_kind(self, name: str) -> ResourceKind:
        """
        Get the descriptor for a kind.

        Raises:
            ValueError: If the kind is not registered
        """
        if name not in self._instances:
            available = ", ".join(sorted(self._kinds.keys())) or "none"
            raise ValueError(
                f"Unknown resource kind: {name}. Available kinds: {available}"
            )
        return self._instances[name]

    def has_kind(self, name: str) -> bool:
        """Check if a kind is registered."""
        return name in self._kinds

    def list_kinds(self) -> list[str]:
        """List all registered kind names."""
        return list(self._kinds.keys())

    def api_versions(self) -> Dict[str, str]:
        """Map each kind's resource segment to its API version."""
        versions = {}
        for kind in self._instances.values():
            if kind.api_version:
                versions[kind.resource_segment] = kind.api_version
        return versions


# Global registry instance
_registry: Optional[KindRegistry] = None


def get_registry() -> KindRegistry:
    """Get the global kind registry singleton."""
    global _registry
    if _registry is None:
        _registry = KindRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None


def register_builtin_kinds(registry: Optional[KindRegistry] = None) -> KindRegistry:
    """
    Register the built-in kinds and discover third-party kinds via entry
    points.

    Returns:
        The registry the kinds were registered with.
    """
    registry = registry or get_registry()

    from kinds.cosmos_gremlin_database import CosmosGremlinDatabaseKind
    from kinds.migrate_project import MigrateProjectKind

    registry.register_kind(CosmosGremlinDatabaseKind)
    registry.register_kind(MigrateProjectKind)

    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            registry.register_kind(ep.load())
        except Exception as e:
            logger.warning(f"Could not load resource kind {ep.name}: {e}")

    return registry
