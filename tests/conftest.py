"""Shared fixtures for the test suite."""

import pytest

from src.intake.config.configuration import (
    AppConfig,
    DatabaseConfig,
    DedupConfig,
    DocumentStoreConfig,
    FastStoreConfig,
    IntakeConfig,
    LoggingConfig,
    NotificationConfig,
    ReportConfig,
)


@pytest.fixture
def app_config(tmp_path):
    """Configuration pointing every path into a temporary directory."""
    return AppConfig(
        dedup=DedupConfig(fingerprint_granularity_minutes=1, attachment_extensions=(".pdf",)),
        fast_store=FastStoreConfig(capacity=50, safety_margin=2, eviction_batch=5),
        database=DatabaseConfig(
            ledger_path=str(tmp_path / "ledger.db"),
            fast_store_path=str(tmp_path / "fast_store.db"),
        ),
        document_store=DocumentStoreConfig(root_dir=str(tmp_path / "documents")),
        notification=NotificationConfig(
            backend="log", channel="#general", webhook_url=None, timeout_seconds=10
        ),
        report=ReportConfig(export_dir=str(tmp_path / "reports")),
        intake=IntakeConfig(inbox_dir=str(tmp_path / "inbox"), max_messages_per_run=10),
        logging=LoggingConfig(level="DEBUG"),
    )
