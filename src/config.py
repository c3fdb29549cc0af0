"""
Configuration module for the lifecycle engine.

Loads configuration from environment variables. Each section is a
dataclass with defaults and a from_env() constructor.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


@dataclass
class TimeoutConfig:
    """Per-verb deadlines in seconds."""

    create: float = 30 * 60
    read: float = 5 * 60
    update: float = 30 * 60
    delete: float = 30 * 60

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            create=float(os.getenv("TIMEOUT_CREATE", str(30 * 60))),
            read=float(os.getenv("TIMEOUT_READ", str(5 * 60))),
            update=float(os.getenv("TIMEOUT_UPDATE", str(30 * 60))),
            delete=float(os.getenv("TIMEOUT_DELETE", str(30 * 60))),
        )

    def for_verb(self, verb: str) -> float:
        """Timeout for a lifecycle verb ('create', 'read', 'update', 'delete')."""
        try:
            return getattr(self, verb)
        except AttributeError:
            raise ValueError(f"Unknown lifecycle verb: {verb}")


@dataclass
class EngineConfig:
    """Reconciliation engine behaviour."""

    poll_interval: float = 10.0  # seconds between operation status checks
    import_check: bool = True  # look for existing objects before creating

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            poll_interval=float(os.getenv("ENGINE_POLL_INTERVAL", "10")),
            import_check=_env_bool("ENGINE_IMPORT_CHECK", "true"),
        )


@dataclass
class ProviderConfig:
    """Azure Resource Manager endpoint and credentials."""

    endpoint: str = "https://management.azure.com"
    subscription_id: str = ""
    token: str = field(default="", repr=False)  # Never log the token
    request_timeout: float = 60.0

    # API version overrides keyed by resource segment type
    api_versions: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        api_versions = {}
        if os.getenv("ARM_API_VERSIONS"):
            try:
                api_versions = json.loads(os.getenv("ARM_API_VERSIONS"))
            except json.JSONDecodeError:
                logger.warning("ARM_API_VERSIONS is not valid JSON, ignoring it")

        return cls(
            endpoint=os.getenv("ARM_ENDPOINT", "https://management.azure.com"),
            subscription_id=os.getenv("ARM_SUBSCRIPTION_ID", ""),
            token=os.getenv("ARM_ACCESS_TOKEN", ""),
            request_timeout=float(os.getenv("ARM_REQUEST_TIMEOUT", "60")),
            api_versions=api_versions,
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(level=os.getenv("LOG_LEVEL", "INFO").upper())


@dataclass
class Config:
    """Main configuration object."""

    timeouts: TimeoutConfig
    engine: EngineConfig
    provider: ProviderConfig
    logging: LoggingConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            timeouts=TimeoutConfig.from_env(),
            engine=EngineConfig.from_env(),
            provider=ProviderConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            timeouts=TimeoutConfig(),
            engine=EngineConfig(),
            provider=ProviderConfig(),
            logging=LoggingConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
