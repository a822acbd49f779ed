"""Ledger and coordination services."""

from src.intake.services.content_ledger import ContentLedger
from src.intake.services.duplicate_coordinator import (
    DuplicateCoordinator,
    delivery_key,
    distinct_recipients,
)
from src.intake.services.fast_store import BoundedFastStore
from src.intake.services.ledger_report import REPORT_COLUMNS, export_reports
from src.intake.services.maintenance import LedgerMaintenance
from src.intake.services.processing_ledger import ProcessingLedger

__all__ = [
    "BoundedFastStore",
    "ContentLedger",
    "DuplicateCoordinator",
    "LedgerMaintenance",
    "ProcessingLedger",
    "REPORT_COLUMNS",
    "delivery_key",
    "distinct_recipients",
    "export_reports",
]
