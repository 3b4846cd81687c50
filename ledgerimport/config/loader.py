"""Configuration loader for LedgerImport.

Loads configuration from TOML files and secrets from .env files.
Environment variables can override any configuration value.
"""

import logging
import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ledgerimport.config.schema import LedgerImportConfig, SecretsConfig
from ledgerimport.errors import ConfigError

logger = logging.getLogger(__name__)

# Environment variable -> (section, key)
ENV_MAPPINGS: dict[str, tuple[str, str]] = {
    # API
    "API_BASE_URL": ("api", "base_url"),
    "API_TIMEOUT_SECONDS": ("api", "timeout_seconds"),
    "API_UPLOAD_TIMEOUT_SECONDS": ("api", "upload_timeout_seconds"),
    "API_VERIFY_TLS": ("api", "verify_tls"),
    "BASE_URL": ("api", "base_url"),  # Shorthand
    # Polling
    "POLLING_INTERVAL_SECONDS": ("polling", "interval_seconds"),
    "POLLING_MAX_DURATION_SECONDS": ("polling", "max_duration_seconds"),
    "POLLING_BACKOFF_FACTOR": ("polling", "backoff_factor"),
    "POLLING_MAX_INTERVAL_SECONDS": ("polling", "max_interval_seconds"),
    "POLL_INTERVAL": ("polling", "interval_seconds"),  # Shorthand
    # Notifications
    "NOTIFICATIONS_BACKEND": ("notifications", "backend"),
    # Logging
    "LOG_LEVEL": ("logging", "level"),
}

FLOAT_KEYS = {
    "timeout_seconds",
    "upload_timeout_seconds",
    "interval_seconds",
    "max_duration_seconds",
    "backoff_factor",
    "max_interval_seconds",
}

BOOL_KEYS = {"verify_tls"}


def get_config_search_paths() -> list[Path]:
    """Get the list of paths to search for configuration files.

    Returns paths in priority order (first found wins):
    1. ./config.toml (project root - for development)
    2. ~/.config/ledgerimport/config.toml (user config)
    3. /etc/ledgerimport/config.toml (system config)
    """
    return [
        Path.cwd() / "config.toml",
        Path.home() / ".config" / "ledgerimport" / "config.toml",
        Path("/etc/ledgerimport/config.toml"),
    ]


def get_secrets_search_paths() -> list[Path]:
    """Get the list of paths to search for secrets files.

    Returns paths in priority order (first found wins):
    1. ./secrets.env (project root - for development)
    2. ~/.config/ledgerimport/secrets.env (user secrets)
    3. /etc/ledgerimport/secrets.env (system secrets)
    """
    return [
        Path.cwd() / "secrets.env",
        Path.home() / ".config" / "ledgerimport" / "secrets.env",
        Path("/etc/ledgerimport/secrets.env"),
    ]


def find_config_file() -> Path | None:
    """Find the first existing config file from search paths."""
    for path in get_config_search_paths():
        if path.exists() and path.is_file():
            logger.debug("Found config file: %s", path)
            return path
    return None


def find_secrets_file() -> Path | None:
    """Find the first existing secrets file from search paths."""
    for path in get_secrets_search_paths():
        if path.exists() and path.is_file():
            logger.debug("Found secrets file: %s", path)
            return path
    return None


def load_toml_file(path: Path) -> dict[str, Any]:
    """Load a TOML file and return its contents as a dictionary.

    Raises:
        ConfigError: If the file is not valid TOML.
    """
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a simple .env file into a dictionary.

    Supports:
    - KEY=value
    - KEY="quoted value"
    - # comments
    - Empty lines
    """
    env_vars: dict[str, str] = {}

    with open(path) as f:
        for line in f:
            line = line.strip()

            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip()

            # Remove surrounding quotes if present
            if (value.startswith('"') and value.endswith('"')) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]

            env_vars[key] = value

    return env_vars


def apply_env_overrides(config_dict: dict[str, Any], prefix: str = "LEDGERIMPORT") -> None:
    """Apply environment variable overrides to configuration dictionary.

    Environment variables are mapped as follows:
    - LEDGERIMPORT_API_BASE_URL -> config_dict["api"]["base_url"]
    - LEDGERIMPORT_POLLING_INTERVAL_SECONDS -> config_dict["polling"]["interval_seconds"]
    - etc.

    Note: This modifies config_dict in place.
    """
    for suffix, (section, key) in ENV_MAPPINGS.items():
        value = os.environ.get(f"{prefix}_{suffix}")
        if value is None:
            continue

        section_dict = config_dict.setdefault(section, {})

        if key in FLOAT_KEYS:
            try:
                section_dict[key] = float(value)
            except ValueError as e:
                raise ConfigError(f"{prefix}_{suffix} must be a number, got {value!r}") from e
        elif key in BOOL_KEYS:
            section_dict[key] = value.lower() in ("true", "1", "yes")
        elif key == "level":
            section_dict[key] = value.upper()
        else:
            section_dict[key] = value


def load_secrets(secrets_file: Path | None = None) -> SecretsConfig:
    """Load secrets from environment variables and optional secrets.env file.

    Environment variables take precedence over file values.
    """
    secrets_dict: dict[str, str | None] = {}

    if secrets_file is None:
        secrets_file = find_secrets_file()

    if secrets_file and secrets_file.exists():
        logger.info("Loading secrets from: %s", secrets_file)
        file_secrets = parse_env_file(secrets_file)
        if "LEDGERIMPORT_API_TOKEN" in file_secrets:
            secrets_dict["api_token"] = file_secrets["LEDGERIMPORT_API_TOKEN"]

    token = os.environ.get("LEDGERIMPORT_API_TOKEN")
    if token:
        secrets_dict["api_token"] = token

    return SecretsConfig(**secrets_dict)


def load_config(config_file: Path | None = None) -> LedgerImportConfig:
    """Load configuration from TOML file with environment variable overrides.

    Args:
        config_file: Optional path to config file. If not provided,
                     searches default locations.

    Returns:
        LedgerImportConfig instance with all settings loaded.

    Raises:
        ConfigError: If the file or an override holds invalid values.
    """
    config_dict: dict[str, Any] = {}

    if config_file is None:
        config_file = find_config_file()

    if config_file and config_file.exists():
        logger.info("Loading config from: %s", config_file)
        config_dict = load_toml_file(config_file)
    else:
        logger.info("No config file found, using defaults with env overrides")

    apply_env_overrides(config_dict)

    try:
        return LedgerImportConfig(**config_dict)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
