"""
Unit tests for ServerConfig.
"""

import logging

import pytest

from rawhttp.config import ServerConfig


class TestServerConfig:
    """Tests for defaults, environment loading and validation."""

    def test_defaults(self):
        config = ServerConfig()

        assert config.host == "0.0.0.0"
        assert config.port == 4221
        assert config.directory is None
        assert config.idle_timeout == 5.0
        config.validate()

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("RAWHTTP_HOST", "127.0.0.1")
        monkeypatch.setenv("RAWHTTP_PORT", "8080")
        monkeypatch.setenv("RAWHTTP_DIRECTORY", str(tmp_path))
        monkeypatch.setenv("RAWHTTP_IDLE_TIMEOUT", "2.5")
        monkeypatch.setenv("RAWHTTP_LOG_LEVEL", "DEBUG")

        config = ServerConfig.from_env()

        assert config.host == "127.0.0.1"
        assert config.port == 8080
        assert config.directory == str(tmp_path)
        assert config.idle_timeout == 2.5
        assert config.log_level_number == logging.DEBUG

    def test_from_env_defaults(self, monkeypatch):
        for name in ("RAWHTTP_HOST", "RAWHTTP_PORT", "RAWHTTP_DIRECTORY",
                     "RAWHTTP_IDLE_TIMEOUT", "RAWHTTP_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        assert ServerConfig.from_env() == ServerConfig()

    def test_port_zero_is_allowed(self):
        ServerConfig(port=0).validate()

    @pytest.mark.parametrize("kwargs", [
        {"port": -1},
        {"port": 65536},
        {"backlog": 0},
        {"buffer_size": 100},
        {"idle_timeout": 0},
        {"write_timeout": -1.0},
        {"max_line_size": 10},
        {"max_headers": 0},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
    ])
    def test_validate_rejects(self, kwargs):
        with pytest.raises(ValueError):
            ServerConfig(**kwargs).validate()
