"""Intake pipeline: wires the services from configuration and runs one pass.

Each invocation processes the messages currently in the inbox once. Periodic
scheduling is left to the host (cron, systemd timer, task scheduler); every
step is idempotent, so overlapping or repeated runs are safe.
"""

import logging
from itertools import islice
from typing import Iterable, Optional

from src.intake.clients import (
    EmlDirectorySource,
    LocalDocumentStore,
    LoggingNotificationSink,
    NotificationSink,
    WebhookNotificationSink,
)
from src.intake.config.configuration import AppConfig, get_config
from src.intake.models import BatchSummary, InboundMessage
from src.intake.services import (
    BoundedFastStore,
    ContentLedger,
    DuplicateCoordinator,
    ProcessingLedger,
)

logger = logging.getLogger(__name__)


def create_notification_sink(config: AppConfig) -> NotificationSink:
    """Create the notification sink selected in configuration."""
    if config.notification.backend == "webhook":
        return WebhookNotificationSink(
            webhook_url=config.notification.webhook_url,
            channel=config.notification.channel,
            timeout_seconds=config.notification.timeout_seconds,
        )
    return LoggingNotificationSink()


def build_coordinator(config: Optional[AppConfig] = None) -> DuplicateCoordinator:
    """Create a DuplicateCoordinator with stores from configuration."""
    config = config or get_config()

    return DuplicateCoordinator(
        fast_store=BoundedFastStore(
            db_path=config.database.fast_store_path,
            capacity=config.fast_store.capacity,
            safety_margin=config.fast_store.safety_margin,
            eviction_batch=config.fast_store.eviction_batch,
        ),
        processing_ledger=ProcessingLedger(config.database.ledger_path),
        content_ledger=ContentLedger(config.database.ledger_path),
        document_store=LocalDocumentStore(config.document_store.root_dir),
        notification_sink=create_notification_sink(config),
        granularity_minutes=config.dedup.fingerprint_granularity_minutes,
        attachment_extensions=config.dedup.attachment_extensions,
        subject_patterns=config.dedup.subject_patterns,
        match_mode=config.dedup.match_mode,
    )


def run_intake(
    messages: Iterable[InboundMessage],
    coordinator: DuplicateCoordinator,
    max_messages: Optional[int] = None,
) -> BatchSummary:
    """
    Process one batch of inbound messages.

    Args:
        messages: Inbound message source.
        coordinator: Coordinator holding the ledgers and collaborators.
        max_messages: Optional limit on messages handled this run.

    Returns:
        BatchSummary with per-state counts.
    """
    if max_messages is not None:
        messages = islice(messages, max_messages)

    logger.info("Starting intake run")
    return coordinator.process_batch(messages)


def run_from_config(config: Optional[AppConfig] = None) -> BatchSummary:
    """Process the configured inbox directory once."""
    config = config or get_config()
    source = EmlDirectorySource(config.intake.inbox_dir)
    coordinator = build_coordinator(config)
    return run_intake(source, coordinator, max_messages=config.intake.max_messages_per_run)


# --- Entry Point ---

if __name__ == "__main__":
    app_config = get_config()
    logging.basicConfig(level=app_config.logging.level)
    summary = run_from_config(app_config)
    print("Intake complete:")
    for name, value in summary.as_dict().items():
        print(f"  - {name}: {value}")
