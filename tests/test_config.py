"""Unit tests for config.py - Configuration management."""

import os
from unittest.mock import patch

import pytest

import config
from config import (
    Config,
    EngineConfig,
    LoggingConfig,
    ProviderConfig,
    TimeoutConfig,
    get_config,
    load_config,
    reset_config,
)


class TestTimeoutConfig:
    """Tests for TimeoutConfig class."""

    def test_default_values(self):
        cfg = TimeoutConfig()
        assert cfg.create == 1800
        assert cfg.read == 300
        assert cfg.update == 1800
        assert cfg.delete == 1800

    def test_from_env(self):
        env_vars = {"TIMEOUT_CREATE": "60", "TIMEOUT_READ": "5.5"}
        with patch.dict(os.environ, env_vars, clear=True):
            cfg = TimeoutConfig.from_env()
        assert cfg.create == 60.0
        assert cfg.read == 5.5
        assert cfg.delete == 1800.0

    def test_for_verb(self):
        cfg = TimeoutConfig(read=10)
        assert cfg.for_verb("read") == 10
        assert cfg.for_verb("delete") == 1800

    def test_for_unknown_verb(self):
        with pytest.raises(ValueError):
            TimeoutConfig().for_verb("import")


class TestEngineConfig:
    """Tests for EngineConfig class."""

    def test_default_values(self):
        cfg = EngineConfig()
        assert cfg.poll_interval == 10.0
        assert cfg.import_check is True

    def test_from_env(self):
        env_vars = {"ENGINE_POLL_INTERVAL": "2", "ENGINE_IMPORT_CHECK": "false"}
        with patch.dict(os.environ, env_vars, clear=True):
            cfg = EngineConfig.from_env()
        assert cfg.poll_interval == 2.0
        assert cfg.import_check is False


class TestProviderConfig:
    """Tests for ProviderConfig class."""

    def test_default_values(self):
        cfg = ProviderConfig()
        assert cfg.endpoint == "https://management.azure.com"
        assert cfg.subscription_id == ""
        assert cfg.api_versions == {}

    def test_from_env(self):
        env_vars = {
            "ARM_ENDPOINT": "https://management.example.com",
            "ARM_SUBSCRIPTION_ID": "0000",
            "ARM_ACCESS_TOKEN": "secret-token",
            "ARM_REQUEST_TIMEOUT": "30",
            "ARM_API_VERSIONS": '{"gremlinDatabases": "2021-10-15"}',
        }
        with patch.dict(os.environ, env_vars, clear=True):
            cfg = ProviderConfig.from_env()
        assert cfg.endpoint == "https://management.example.com"
        assert cfg.subscription_id == "0000"
        assert cfg.token == "secret-token"
        assert cfg.request_timeout == 30.0
        assert cfg.api_versions == {"gremlinDatabases": "2021-10-15"}

    def test_invalid_api_versions_ignored(self):
        with patch.dict(os.environ, {"ARM_API_VERSIONS": "not json"}, clear=True):
            cfg = ProviderConfig.from_env()
        assert cfg.api_versions == {}

    def test_token_not_in_repr(self):
        cfg = ProviderConfig(token="secret-token")
        assert "secret-token" not in repr(cfg)


class TestLoggingConfig:
    """Tests for LoggingConfig class."""

    def test_from_env(self):
        with patch.dict(os.environ, {"LOG_LEVEL": "debug"}, clear=True):
            cfg = LoggingConfig.from_env()
        assert cfg.level == "DEBUG"


class TestConfig:
    """Tests for main Config class and the global instance."""

    def setup_method(self):
        reset_config()

    def teardown_method(self):
        reset_config()

    def test_default(self):
        cfg = Config.default()
        assert cfg.timeouts == TimeoutConfig()
        assert cfg.engine == EngineConfig()
        assert cfg.logging.level == "INFO"

    def test_load_config_singleton(self):
        with patch.dict(os.environ, {}, clear=True):
            first = load_config()
            second = load_config()
        assert first is second
        assert get_config() is first

    def test_reset_config(self):
        with patch.dict(os.environ, {}, clear=True):
            load_config()
        reset_config()
        assert config.config is None
