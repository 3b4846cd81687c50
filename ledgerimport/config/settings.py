"""Global settings instance for LedgerImport.

This module provides a unified settings object that combines:
- Configuration from config.toml
- Secrets from secrets.env
- Environment variable overrides
"""

import logging

from ledgerimport.config.loader import load_config, load_secrets
from ledgerimport.config.schema import LedgerImportConfig, SecretsConfig

logger = logging.getLogger(__name__)


class Settings:
    """Unified settings object combining config and secrets.

    Provides a flat interface for accessing configuration values while
    internally using the structured LedgerImportConfig and SecretsConfig.
    """

    def __init__(
        self,
        config: LedgerImportConfig | None = None,
        secrets: SecretsConfig | None = None,
    ):
        """Initialize settings.

        Args:
            config: Optional LedgerImportConfig instance. If not provided, loads from file.
            secrets: Optional SecretsConfig instance. If not provided, loads from file.
        """
        self._config = config or load_config()
        self._secrets = secrets or load_secrets()

        if not self._secrets.api_token:
            logger.debug("No API token configured; requests will be sent unauthenticated")

    @property
    def config(self) -> LedgerImportConfig:
        """Get the full configuration object."""
        return self._config

    @property
    def secrets(self) -> SecretsConfig:
        """Get the secrets configuration object."""
        return self._secrets

    @property
    def app_name(self) -> str:
        return self._config.app_name

    # API
    @property
    def api_base_url(self) -> str:
        return self._config.api.base_url

    @property
    def api_timeout(self) -> float:
        return self._config.api.timeout_seconds

    @property
    def upload_timeout(self) -> float:
        return self._config.api.upload_timeout_seconds

    @property
    def verify_tls(self) -> bool:
        return self._config.api.verify_tls

    # Polling
    @property
    def poll_interval(self) -> float:
        return self._config.polling.interval_seconds

    @property
    def poll_max_duration(self) -> float | None:
        # 0 in the file means "no limit"
        return self._config.polling.max_duration_seconds or None

    @property
    def poll_backoff_factor(self) -> float:
        return self._config.polling.backoff_factor

    @property
    def poll_max_interval(self) -> float:
        return self._config.polling.max_interval_seconds

    # Notifications
    @property
    def notification_backend(self) -> str:
        return self._config.notifications.backend

    # Logging
    @property
    def log_level(self) -> str:
        return self._config.logging.level

    @property
    def log_format(self) -> str:
        return self._config.logging.format

    # Secrets
    @property
    def api_token(self) -> str | None:
        return self._secrets.api_token


# Global settings instance - lazily initialized
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance.

    The settings are loaded once and cached for subsequent calls.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance.

    This is primarily useful for testing to reload configuration.
    """
    global _settings
    _settings = None


class _SettingsProxy:
    """Proxy object that lazily loads settings on first access."""

    def __getattr__(self, name: str):
        return getattr(get_settings(), name)

    def __repr__(self) -> str:
        return repr(get_settings())


settings = _SettingsProxy()
