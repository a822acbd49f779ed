"""Configuration module for the document intake ledger.

Loads settings from environment-specific config files:
- APP_ENV=dev  → config_dev.yaml (local paths, verbose logging)
- APP_ENV=test → config_test.yaml (throwaway paths for test runs)
- Default      → config.yaml

Secrets (the notification webhook URL) are loaded from the .env file.
Fails fast with clear error messages if required configuration is missing.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import yaml
from dotenv import load_dotenv


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_project_root() -> Path:
    """Get the project root directory (where config.yaml lives)."""
    # Navigate from src/intake/config/ up to project root
    return Path(__file__).parent.parent.parent.parent


def _get_config_filename() -> str:
    """Get config filename based on APP_ENV environment variable.

    Returns:
        Config filename:
        - APP_ENV=dev  → config_dev.yaml
        - APP_ENV=test → config_test.yaml
        - Default      → config.yaml
    """
    app_env = os.environ.get("APP_ENV", "").lower()

    if app_env == "dev":
        return "config_dev.yaml"
    elif app_env == "test":
        return "config_test.yaml"
    else:
        return "config.yaml"


def _load_yaml_config() -> dict:
    """Load configuration from environment-specific config file."""
    config_filename = _get_config_filename()
    config_path = _get_project_root() / config_filename

    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}. "
            f"Set APP_ENV to 'dev' or 'test', or create {config_filename}."
        )

    with open(config_path, "r") as f:
        return yaml.safe_load(f) or {}


def _get_required_env(key: str) -> str:
    """Get required environment variable or raise ConfigurationError."""
    value = os.environ.get(key)
    if not value:
        raise ConfigurationError(
            f"Required environment variable '{key}' is not set. "
            f"Please add it to your .env file."
        )
    return value


def _get_optional_env(key: str, default: Optional[str] = None) -> Optional[str]:
    """Get optional environment variable with default."""
    return os.environ.get(key, default)


@dataclass(frozen=True)
class DedupConfig:
    """Content fingerprint configuration."""
    fingerprint_granularity_minutes: int
    attachment_extensions: Tuple[str, ...]
    subject_patterns: Tuple[str, ...] = ()  # Empty accepts every subject
    match_mode: str = "any"  # "any" or "all"


@dataclass(frozen=True)
class FastStoreConfig:
    """Bounded fast store configuration."""
    capacity: int
    safety_margin: int
    eviction_batch: int


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    ledger_path: str
    fast_store_path: str


@dataclass(frozen=True)
class DocumentStoreConfig:
    """Document store configuration."""
    root_dir: str


@dataclass(frozen=True)
class NotificationConfig:
    """Notification sink configuration with backend toggle."""
    backend: str  # "log" or "webhook"
    channel: str
    webhook_url: Optional[str]  # Only required when backend == "webhook"
    timeout_seconds: int


@dataclass(frozen=True)
class ReportConfig:
    """Tabular report configuration."""
    export_dir: str


@dataclass(frozen=True)
class IntakeConfig:
    """Inbound message source configuration."""
    inbox_dir: str
    max_messages_per_run: int


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""
    level: str


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration container."""
    dedup: DedupConfig
    fast_store: FastStoreConfig
    database: DatabaseConfig
    document_store: DocumentStoreConfig
    notification: NotificationConfig
    report: ReportConfig
    intake: IntakeConfig
    logging: LoggingConfig


def load_config() -> AppConfig:
    """
    Load and validate all application configuration.

    Loads from config.yaml for non-sensitive settings and .env for secrets.
    Fails fast if required configuration is missing.

    Returns:
        AppConfig: Validated application configuration.

    Raises:
        ConfigurationError: If required configuration is missing or invalid.
    """
    # Load environment variables from .env file
    load_dotenv()

    # Load YAML configuration
    yaml_config = _load_yaml_config()

    # Build Dedup config
    dedup_section = yaml_config.get("dedup", {})
    granularity = int(dedup_section.get("fingerprint_granularity_minutes", 1))
    if granularity < 1:
        raise ConfigurationError(
            f"dedup.fingerprint_granularity_minutes must be at least 1, got {granularity}"
        )

    subject_patterns = tuple(dedup_section.get("subject_patterns") or [])
    for pattern in subject_patterns:
        try:
            re.compile(pattern)
        except re.error as e:
            raise ConfigurationError(f"Invalid dedup.subject_patterns entry {pattern!r}: {e}") from e

    match_mode = dedup_section.get("match_mode", "any")
    if match_mode not in ("any", "all"):
        raise ConfigurationError(f"dedup.match_mode must be 'any' or 'all', got '{match_mode}'")

    dedup_config = DedupConfig(
        fingerprint_granularity_minutes=granularity,
        attachment_extensions=tuple(
            ext.lower() for ext in dedup_section.get("attachment_extensions", [".pdf"])
        ),
        subject_patterns=subject_patterns,
        match_mode=match_mode,
    )

    # Build Fast Store config
    fast_store_section = yaml_config.get("fast_store", {})

    fast_store_config = FastStoreConfig(
        capacity=int(fast_store_section.get("capacity", 50)),
        safety_margin=int(fast_store_section.get("safety_margin", 2)),
        eviction_batch=int(fast_store_section.get("eviction_batch", 5)),
    )
    if fast_store_config.capacity <= fast_store_config.safety_margin:
        raise ConfigurationError(
            "fast_store.capacity must be greater than fast_store.safety_margin"
        )

    # Build Database config
    db_section = yaml_config.get("database", {})

    database_config = DatabaseConfig(
        ledger_path=db_section.get("ledger_path", "intake_ledger.db"),
        fast_store_path=db_section.get("fast_store_path", "fast_store.db"),
    )

    # Build Document Store config
    document_store_section = yaml_config.get("document_store", {})

    document_store_config = DocumentStoreConfig(
        root_dir=document_store_section.get("root_dir", "documents"),
    )

    # Build Notification config
    notification_section = yaml_config.get("notification", {})
    notification_backend = notification_section.get("backend", "log")
    if notification_backend not in ("log", "webhook"):
        raise ConfigurationError(
            f"notification.backend must be 'log' or 'webhook', got '{notification_backend}'"
        )

    webhook_url: Optional[str] = None
    if notification_backend == "webhook":
        webhook_url = _get_required_env("NOTIFY_WEBHOOK_URL")

    notification_config = NotificationConfig(
        backend=notification_backend,
        channel=_get_optional_env(
            "NOTIFY_CHANNEL", notification_section.get("channel", "#general")
        ),
        webhook_url=webhook_url,
        timeout_seconds=int(notification_section.get("timeout_seconds", 10)),
    )

    # Build Report config
    report_section = yaml_config.get("report", {})

    report_config = ReportConfig(
        export_dir=report_section.get("export_dir", "reports"),
    )

    # Build Intake config
    intake_section = yaml_config.get("intake", {})

    intake_config = IntakeConfig(
        inbox_dir=intake_section.get("inbox_dir", "inbox"),
        max_messages_per_run=int(intake_section.get("max_messages_per_run", 10)),
    )

    # Build Logging config
    logging_section = yaml_config.get("logging", {})

    logging_config = LoggingConfig(
        level=logging_section.get("level", "INFO"),
    )

    return AppConfig(
        dedup=dedup_config,
        fast_store=fast_store_config,
        database=database_config,
        document_store=document_store_config,
        notification=notification_config,
        report=report_config,
        intake=intake_config,
        logging=logging_config,
    )


# Module-level singleton for convenience
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the application configuration singleton.

    Lazy-loads configuration on first access.
    Config file is selected based on APP_ENV environment variable.

    Returns:
        AppConfig: Application configuration.

    Raises:
        ConfigurationError: If required configuration is missing.
    """
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_environment() -> str:
    """Get current environment name.

    Returns:
        'dev', 'test', or 'default' based on APP_ENV.
    """
    app_env = os.environ.get("APP_ENV", "").lower()
    return app_env if app_env in ("dev", "test") else "default"


def reset_config() -> None:
    """Reset the config singleton. Useful for testing."""
    global _config
    _config = None
