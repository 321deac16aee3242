"""Configuration loading for the StorageGRID provider.

Supports three configuration sources, merged per field:
1. Explicit settings (the provider block) - take priority
2. Environment variables
3. A JSON config file (for local development)

Environment Variables:
    STORAGEGRID_ENDPOINT=https://grid.example.com:9443
    STORAGEGRID_ACCOUNTID=12345678901234567890
    STORAGEGRID_USERNAME=root
    STORAGEGRID_PASSWORD=secret
    STORAGEGRID_S3_ENDPOINT=https://grid.example.com:10443   (optional)

Example config.json:
    {
        "endpoint": "https://grid.example.com:9443",
        "account_id": "12345678901234567890",
        "username": "root",
        "password": "secret"
    }
"""

import json
import os
from pathlib import Path
from typing import Optional

from storagegrid_provider.models import ProviderConfig


class ConfigError(Exception):
    """Raised when configuration loading fails."""

    pass


# Field name -> environment variable
ENV_VARS = {
    "endpoint": "STORAGEGRID_ENDPOINT",
    "account_id": "STORAGEGRID_ACCOUNTID",
    "username": "STORAGEGRID_USERNAME",
    "password": "STORAGEGRID_PASSWORD",
    "s3_endpoint": "STORAGEGRID_S3_ENDPOINT",
}

# Required fields for a provider configuration
REQUIRED_FIELDS = ["endpoint", "account_id", "username", "password"]


def load_from_json(config_path: str) -> dict[str, str]:
    """Load provider settings from a JSON file.

    Args:
        config_path: Path to the config.json file.

    Returns:
        Dictionary of the known settings present in the file.

    Raises:
        ConfigError: If the file doesn't exist, contains invalid JSON,
                    or is not a JSON object.
    """
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in config file: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("Config file must contain a JSON object")

    return {key: str(data[key]) for key in ENV_VARS if data.get(key)}


def load_from_env() -> dict[str, str]:
    """Load provider settings from STORAGEGRID_* environment variables.

    Returns:
        Dictionary of the settings whose variables are set and non-empty.
    """
    settings = {}
    for key, env_var in ENV_VARS.items():
        value = os.environ.get(env_var)
        if value:
            settings[key] = value
    return settings


def has_env_config() -> bool:
    """Check if any STORAGEGRID_* environment variables are set."""
    return any(os.environ.get(env_var) for env_var in ENV_VARS.values())


def resolve_provider_config(
    explicit: Optional[dict[str, Optional[str]]] = None,
    config_path: Optional[str] = None,
) -> ProviderConfig:
    """Merge configuration sources into a complete ProviderConfig.

    Priority order, per field:
    1. Explicit settings
    2. Environment variables
    3. config file (only if config_path is given)

    Args:
        explicit: Settings from the provider block; None or empty values
                  fall through to the next source.
        config_path: Optional path to a JSON config file.

    Returns:
        The resolved ProviderConfig.

    Raises:
        ConfigError: If the config file is unreadable, or any required
                    field is missing from every source.
    """
    settings: dict[str, str] = {}

    if config_path is not None:
        settings.update(load_from_json(config_path))

    settings.update(load_from_env())

    for key, value in (explicit or {}).items():
        if key not in ENV_VARS:
            raise ConfigError(f"Unknown provider setting: {key}")
        if value:
            settings[key] = value

    missing = [key for key in REQUIRED_FIELDS if not settings.get(key)]
    if missing:
        names = ", ".join(f"{key} ({ENV_VARS[key]})" for key in missing)
        raise ConfigError(f"Missing required provider settings: {names}")

    return ProviderConfig(
        endpoint=settings["endpoint"],
        account_id=settings["account_id"],
        username=settings["username"],
        password=settings["password"],
        s3_endpoint=settings.get("s3_endpoint"),
    )


def load_provider_config(config_path: str = "config.json") -> ProviderConfig:
    """Load the provider configuration with environment priority.

    The config file is only read if it exists.

    Args:
        config_path: Path to config.json (used as fallback).

    Returns:
        The resolved ProviderConfig.

    Raises:
        ConfigError: If the configuration is incomplete.
    """
    path = config_path if Path(config_path).exists() else None
    return resolve_provider_config(config_path=path)
