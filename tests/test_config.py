"""Tests for configuration loading module."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from storagegrid_provider.config import (
    ConfigError,
    has_env_config,
    load_from_env,
    load_from_json,
    load_provider_config,
    resolve_provider_config,
)
from storagegrid_provider.models import ProviderConfig

FULL_ENV = {
    "STORAGEGRID_ENDPOINT": "https://grid.example.com:9443",
    "STORAGEGRID_ACCOUNTID": "12345678901234567890",
    "STORAGEGRID_USERNAME": "root",
    "STORAGEGRID_PASSWORD": "secret",
}


class TestLoadFromJson:
    """Tests for load_from_json function."""

    def test_valid_config(self, tmp_path: Path):
        """Load a config file with all fields specified."""
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({
            "endpoint": "https://grid.example.com:9443",
            "account_id": "123",
            "username": "root",
            "password": "secret",
            "s3_endpoint": "https://s3.example.com",
            "comment": "ignored",
        }))

        settings = load_from_json(str(config_file))

        assert settings["endpoint"] == "https://grid.example.com:9443"
        assert settings["s3_endpoint"] == "https://s3.example.com"
        assert "comment" not in settings

    def test_missing_file_raises_error(self, tmp_path: Path):
        """Raise ConfigError when config file doesn't exist."""
        with pytest.raises(ConfigError, match="Config file not found"):
            load_from_json(str(tmp_path / "nonexistent.json"))

    def test_malformed_json_raises_error(self, tmp_path: Path):
        """Raise ConfigError when config file contains invalid JSON."""
        config_file = tmp_path / "config.json"
        config_file.write_text("{ invalid json }")

        with pytest.raises(ConfigError, match="Invalid JSON"):
            load_from_json(str(config_file))

    def test_non_object_raises_error(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text("[]")

        with pytest.raises(ConfigError, match="JSON object"):
            load_from_json(str(config_file))


class TestLoadFromEnv:
    """Tests for load_from_env function."""

    @patch.dict(os.environ, FULL_ENV, clear=True)
    def test_reads_all_variables(self):
        settings = load_from_env()

        assert settings == {
            "endpoint": "https://grid.example.com:9443",
            "account_id": "12345678901234567890",
            "username": "root",
            "password": "secret",
        }

    @patch.dict(os.environ, {"STORAGEGRID_ENDPOINT": ""}, clear=True)
    def test_empty_values_ignored(self):
        assert load_from_env() == {}
        assert has_env_config() is False

    @patch.dict(os.environ, {"STORAGEGRID_USERNAME": "root"}, clear=True)
    def test_has_env_config(self):
        assert has_env_config() is True


class TestResolveProviderConfig:
    """Tests for merging explicit settings over the environment."""

    @patch.dict(os.environ, FULL_ENV, clear=True)
    def test_environment_only(self):
        config = resolve_provider_config()

        assert config == ProviderConfig(
            endpoint="https://grid.example.com:9443",
            account_id="12345678901234567890",
            username="root",
            password="secret",
        )

    @patch.dict(os.environ, FULL_ENV, clear=True)
    def test_explicit_overrides_environment(self):
        config = resolve_provider_config({"username": "admin", "password": None})

        assert config.username == "admin"
        assert config.password == "secret"

    @patch.dict(os.environ, {"STORAGEGRID_ENDPOINT": "https://grid.example.com:9443"}, clear=True)
    def test_missing_fields_all_named(self):
        """The error lists every missing field with its variable."""
        with pytest.raises(ConfigError) as exc_info:
            resolve_provider_config()

        message = str(exc_info.value)
        assert "account_id (STORAGEGRID_ACCOUNTID)" in message
        assert "username (STORAGEGRID_USERNAME)" in message
        assert "password (STORAGEGRID_PASSWORD)" in message
        assert "endpoint (" not in message

    @patch.dict(os.environ, {}, clear=True)
    def test_unknown_setting(self):
        with pytest.raises(ConfigError, match="Unknown provider setting"):
            resolve_provider_config({"region": "us-east-1"})

    @patch.dict(os.environ, {"STORAGEGRID_PASSWORD": "from-env"}, clear=True)
    def test_environment_overrides_file(self, tmp_path: Path):
        config_file = tmp_path / "config.json"
        config_file.write_text(json.dumps({
            "endpoint": "https://grid.example.com:9443",
            "account_id": "1",
            "username": "root",
            "password": "from-file",
        }))

        config = resolve_provider_config(config_path=str(config_file))

        assert config.password == "from-env"
        assert config.username == "root"


class TestLoadProviderConfig:
    """Tests for load_provider_config function."""

    @patch.dict(os.environ, FULL_ENV, clear=True)
    def test_missing_file_falls_back_to_env(self, tmp_path: Path):
        config = load_provider_config(str(tmp_path / "missing.json"))
        assert config.username == "root"

    @patch.dict(os.environ, {}, clear=True)
    def test_nothing_configured(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Missing required provider settings"):
            load_provider_config(str(tmp_path / "missing.json"))
