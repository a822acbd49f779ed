"""Data models module."""

from src.intake.models.fast_store import FastStoreUsage, InsertResult, QuotaEntry
from src.intake.models.inbound_message import Attachment, InboundMessage
from src.intake.models.ledger_records import (
    DuplicateRecord,
    ProcessingRecord,
    ProcessingStats,
    ProcessingStatus,
)
from src.intake.models.outcome import (
    BatchSummary,
    CleanupResult,
    DeliveryOutcome,
    DeliveryState,
)

__all__ = [
    "Attachment",
    "BatchSummary",
    "CleanupResult",
    "DeliveryOutcome",
    "DeliveryState",
    "DuplicateRecord",
    "FastStoreUsage",
    "InboundMessage",
    "InsertResult",
    "ProcessingRecord",
    "ProcessingStats",
    "ProcessingStatus",
    "QuotaEntry",
]
