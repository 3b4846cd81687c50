"""Pydantic models for LedgerImport configuration.

These models define the structure of config.toml and secrets.env files.
"""

from typing import Literal

from pydantic import BaseModel, Field


class ApiConfig(BaseModel):
    """Accounting API connection configuration."""

    base_url: str = "http://localhost:5000/api/"
    timeout_seconds: float = 30.0
    # Upload stage/commit requests carry whole workbooks
    upload_timeout_seconds: float = 120.0
    verify_tls: bool = True


class PollingConfig(BaseModel):
    """Import job status polling configuration."""

    interval_seconds: float = Field(2.0, gt=0)
    # 0 disables the limit and polls until the job terminates
    max_duration_seconds: float = Field(3600.0, ge=0)
    backoff_factor: float = Field(1.0, ge=1.0)
    max_interval_seconds: float = Field(30.0, gt=0)


class NotificationConfig(BaseModel):
    """Operator notification configuration."""

    backend: Literal["console", "log"] = "console"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: str = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class LedgerImportConfig(BaseModel):
    """Main LedgerImport configuration loaded from config.toml."""

    app_name: str = "LedgerImport"
    api: ApiConfig = Field(default_factory=ApiConfig)
    polling: PollingConfig = Field(default_factory=PollingConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class SecretsConfig(BaseModel):
    """Secrets loaded from secrets.env file.

    These are sensitive values that should not be stored in config.toml.
    """

    api_token: str | None = None
