"""
Unit tests for ServerConfig.
"""

import logging

import pytest

from assetrelay.config import ServerConfig
from assetrelay.errors import InvalidConfiguration


class TestDefaults:
    """Tests for default values."""

    def test_defaults(self):
        config = ServerConfig()

        assert config.host == "127.0.0.1"
        assert config.port == 8000
        assert config.workers == 10
        assert config.upstream_timeout == 30.0
        assert config.server_name.startswith("assetrelay/")
        assert config.mode is None

    def test_mode(self):
        assert ServerConfig(build_dir="/srv/build").mode == "build"
        assert ServerConfig(serve_url="http://localhost:8080").mode == "serve"


class TestFromEnv:
    """Tests for ServerConfig.from_env()."""

    def test_reads_prefixed_variables(self):
        config = ServerConfig.from_env({
            "ASSETRELAY_HOST": "0.0.0.0",
            "ASSETRELAY_PORT": "9000",
            "ASSETRELAY_WORKERS": "4",
            "ASSETRELAY_TIMEOUT": "12.5",
            "ASSETRELAY_BUILD_DIR": "/srv/app/build",
            "ASSETRELAY_LOG_LEVEL": "debug",
        })

        assert config.host == "0.0.0.0"
        assert config.port == 9000
        assert config.workers == 4
        assert config.timeout == 12.5
        assert config.build_dir == "/srv/app/build"
        assert config.serve_url is None
        assert config.log_level == "DEBUG"

    def test_empty_values_use_defaults(self):
        config = ServerConfig.from_env({"ASSETRELAY_PORT": "", "ASSETRELAY_SERVE_URL": ""})

        assert config.port == 8000
        assert config.serve_url is None

    def test_overrides_win(self):
        config = ServerConfig.from_env(
            {"ASSETRELAY_PORT": "9000"},
            port=9100,
            host=None,
            serve_url="http://localhost:8080",
        )

        assert config.port == 9100
        assert config.host == "127.0.0.1"
        assert config.serve_url == "http://localhost:8080"

    def test_bad_number(self):
        with pytest.raises(ValueError):
            ServerConfig.from_env({"ASSETRELAY_PORT": "eighty"})


class TestValidate:
    """Tests for ServerConfig.validate()."""

    def test_valid_build_mode(self, build_dir):
        ServerConfig(build_dir=str(build_dir)).validate()

    def test_valid_serve_mode(self):
        ServerConfig(serve_url="http://localhost:8080", port=0).validate()

    def test_both_modes(self, build_dir):
        config = ServerConfig(build_dir=str(build_dir), serve_url="http://localhost:8080")

        with pytest.raises(InvalidConfiguration) as exc_info:
            config.validate()

        assert "mutually exclusive" in str(exc_info.value)

    def test_no_mode(self):
        with pytest.raises(InvalidConfiguration):
            ServerConfig().validate()

    def test_relative_build_dir(self):
        with pytest.raises(InvalidConfiguration):
            ServerConfig(build_dir="build").validate()

    def test_bad_serve_url(self):
        with pytest.raises(InvalidConfiguration):
            ServerConfig(serve_url="localhost").validate()

    def test_missing_build_dir_warns(self, tmp_path, caplog):
        config = ServerConfig(build_dir=str(tmp_path / "not-built"))

        with caplog.at_level(logging.WARNING, logger="assetrelay.config"):
            config.validate()

        assert "does not exist" in caplog.text

    @pytest.mark.parametrize("overrides", [
        {"port": -1},
        {"port": 65536},
        {"workers": 0},
        {"queue_size": 0},
        {"buffer_size": 100},
        {"timeout": 0},
        {"upstream_timeout": 0},
        {"chunk_size": 0},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
    ])
    def test_out_of_range(self, overrides):
        config = ServerConfig(serve_url="http://localhost:8080", **overrides)

        with pytest.raises(ValueError):
            config.validate()
