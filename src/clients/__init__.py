"""
Remote API clients package.

Concrete implementations of RemoteAPIClient for specific providers.
"""

from clients.arm import ResourceManagerClient

__all__ = ["ResourceManagerClient"]
