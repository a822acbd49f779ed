"""Configuration module."""

from src.intake.config.configuration import (
    AppConfig,
    ConfigurationError,
    DatabaseConfig,
    DedupConfig,
    DocumentStoreConfig,
    FastStoreConfig,
    IntakeConfig,
    LoggingConfig,
    NotificationConfig,
    ReportConfig,
    get_config,
    get_environment,
    load_config,
    reset_config,
)

__all__ = [
    "AppConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "DedupConfig",
    "DocumentStoreConfig",
    "FastStoreConfig",
    "IntakeConfig",
    "LoggingConfig",
    "NotificationConfig",
    "ReportConfig",
    "get_config",
    "get_environment",
    "load_config",
    "reset_config",
]
