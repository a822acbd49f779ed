"""Operator maintenance for the processing ledger and fast store.

Cleanup only ever touches delivery tracking. The content ledger is not
reachable from here: artifact locations are kept permanently.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List

from src.intake.models import CleanupResult, ProcessingStatus
from src.intake.services.duplicate_coordinator import delivery_key
from src.intake.services.fast_store import BoundedFastStore
from src.intake.services.processing_ledger import ProcessingLedger

logger = logging.getLogger(__name__)

BUSY_LEDGER_THRESHOLD = 20


class LedgerMaintenance:
    """Age-based cleanup and usage statistics."""

    def __init__(self, processing_ledger: ProcessingLedger, fast_store: BoundedFastStore):
        self._processing_ledger = processing_ledger
        self._fast_store = fast_store

    def cleanup(self, days_old: int, dry_run: bool = False) -> CleanupResult:
        """Delete processing records and fast store entries older than days_old.

        Args:
            days_old: Age threshold in days.
            dry_run: If True, only count what would be deleted.

        Returns:
            CleanupResult with matched and deleted counts.

        Raises:
            ValueError: If days_old is negative.
        """
        if days_old < 0:
            raise ValueError(f"days_old must not be negative, got {days_old}")

        cutoff = datetime.now(timezone.utc) - timedelta(days=days_old)
        logger.info(
            f"{'DRY RUN: ' if dry_run else ''}Cleaning up entries older than {days_old} days"
        )

        records = self._processing_ledger.delete_older_than(cutoff, dry_run=dry_run)
        entries = self._fast_store.delete_older_than(cutoff, dry_run=dry_run)

        return CleanupResult(
            days_old=days_old,
            dry_run=dry_run,
            processing_records_matched=len(records),
            fast_store_entries_matched=len(entries),
            processing_records_deleted=0 if dry_run else len(records),
            fast_store_entries_deleted=0 if dry_run else len(entries),
        )

    def emergency_cleanup(self, days_old: int = 3) -> CleanupResult:
        """Run cleanup only when the fast store is near its limit."""
        usage = self._fast_store.usage()
        if not usage.near_limit:
            logger.info(f"No emergency cleanup needed ({usage.size}/{usage.capacity})")
            return CleanupResult(days_old, False, 0, 0, 0, 0)

        logger.warning(f"Fast store near limit ({usage.size}/{usage.capacity}); cleaning up")
        return self.cleanup(days_old)

    def purge_failed(self, dry_run: bool = False) -> int:
        """Delete failed deliveries from the ledger and the fast store.

        Failed deliveries are retried by every run anyway; purging also drops
        their Error records from reports and stats.

        Returns:
            Number of failed records matched.
        """
        failed = [
            record
            for record in self._processing_ledger.records()
            if record.status is ProcessingStatus.ERROR
        ]
        if dry_run:
            return len(failed)

        for record in failed:
            self._processing_ledger.delete(record.message_id, record.recipient)
            self._fast_store.remove(delivery_key(record.message_id, record.recipient))

        if failed:
            logger.info(f"Purged {len(failed)} failed delivery records")
        return len(failed)

    def stats(self) -> dict:
        """Usage figures and recommendations for operators."""
        usage = self._fast_store.usage()
        processing = self._processing_ledger.stats()

        recommendations: List[str] = []
        if usage.at_limit:
            recommendations.append("Fast store at capacity; oldest entries are being evicted")
        elif usage.near_limit:
            recommendations.append("Fast store approaching capacity; consider running cleanup")
        if processing.total > BUSY_LEDGER_THRESHOLD and processing.recent < processing.total:
            recommendations.append("Old processed entries present; consider running cleanup")
        if processing.errors:
            recommendations.append(
                f"{processing.errors} failed deliveries; they are retried on the next run"
            )

        return {
            "fast_store_size": usage.size,
            "fast_store_capacity": usage.capacity,
            "fast_store_percent_used": usage.percent_used,
            "near_limit": usage.near_limit,
            "at_limit": usage.at_limit,
            "processed_total": processing.total,
            "processed_recent": processing.recent,
            "processed_errors": processing.errors,
            "recommendations": recommendations,
        }
