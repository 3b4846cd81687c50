"""LedgerImport configuration module.

This module provides TOML-based configuration with environment variable overrides.

Configuration is loaded from the following locations (in order of priority):
1. Environment variables (highest priority)
2. ./config.toml (project root - for development)
3. ~/.config/ledgerimport/config.toml (user config)
4. /etc/ledgerimport/config.toml (system config)

The API token is loaded from secrets.env files in the same directories.
"""

from ledgerimport.config.schema import (
    ApiConfig,
    LedgerImportConfig,
    LoggingConfig,
    NotificationConfig,
    PollingConfig,
    SecretsConfig,
)
from ledgerimport.config.settings import Settings, get_settings, reset_settings, settings

__all__ = [
    "ApiConfig",
    "LedgerImportConfig",
    "LoggingConfig",
    "NotificationConfig",
    "PollingConfig",
    "SecretsConfig",
    "Settings",
    "get_settings",
    "reset_settings",
    "settings",
]
