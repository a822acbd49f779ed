"""Processing ledger: authoritative record of handled deliveries.

Each delivery (message id + recipient) is recorded once when processing
finishes, successfully or not. Unlike the bounded fast store this ledger
never forgets on its own; only the maintenance cleanup removes old rows.
"""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from src.intake.clients import SqliteClient
from src.intake.models import ProcessingRecord, ProcessingStats, ProcessingStatus

logger = logging.getLogger(__name__)

# SQL statements
CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS processing_ledger (
    row_id INTEGER PRIMARY KEY AUTOINCREMENT,
    message_id TEXT NOT NULL,
    recipient TEXT NOT NULL DEFAULT '',
    processed_at TEXT NOT NULL,
    content_key TEXT,
    subject TEXT NOT NULL DEFAULT '',
    sender TEXT NOT NULL DEFAULT '',
    status TEXT NOT NULL,
    error TEXT,
    UNIQUE (message_id, recipient)
)
"""

SELECT_COLUMNS = """message_id, recipient, processed_at, content_key, subject,
                    sender, status, error"""


def _row_to_record(row) -> ProcessingRecord:
    return ProcessingRecord(
        message_id=row[0],
        recipient=row[1],
        processed_at=datetime.fromisoformat(row[2]),
        content_key=row[3],
        subject=row[4],
        sender=row[5],
        status=ProcessingStatus(row[6]),
        error=row[7],
    )


class ProcessingLedger:
    """Append-only store of ProcessingRecords keyed by delivery."""

    def __init__(self, db_path: str = "intake_ledger.db"):
        """Initialize the processing ledger.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = db_path
        self._lock = threading.Lock()
        self._sqlite_client = SqliteClient(db_path)
        self._sqlite_client.execute_query(CREATE_TABLE_SQL)
        logger.debug("Processing ledger table initialized")

    def lookup(self, message_id: str, recipient: str = "") -> Optional[ProcessingRecord]:
        """Find the record of a delivery.

        Args:
            message_id: Unique identifier of the delivered message.
            recipient: Recipient the delivery was handled for ("" if none).

        Returns:
            ProcessingRecord if the delivery was handled, None otherwise.
        """
        result = self._sqlite_client.execute_query(
            f"""SELECT {SELECT_COLUMNS} FROM processing_ledger
                WHERE message_id = ? AND recipient = ?""",
            (message_id, recipient),
        )

        if not result:
            return None

        return _row_to_record(result[0])

    def append(self, record: ProcessingRecord) -> bool:
        """Mark a delivery as processed.

        Safe to repeat: an existing Success record for the same delivery is
        kept. An existing Error record is replaced, so a retried delivery
        ends up with the result of its latest attempt.

        Returns:
            True if a record was written or replaced.
        """
        with self._lock:
            rowcount = self._sqlite_client.execute_write(
                f"""INSERT INTO processing_ledger ({SELECT_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT (message_id, recipient) DO UPDATE SET
                        processed_at = excluded.processed_at,
                        content_key = excluded.content_key,
                        subject = excluded.subject,
                        sender = excluded.sender,
                        status = excluded.status,
                        error = excluded.error
                    WHERE processing_ledger.status = '{ProcessingStatus.ERROR.value}'""",
                (
                    record.message_id,
                    record.recipient,
                    record.processed_at.isoformat(),
                    record.content_key,
                    record.subject,
                    record.sender,
                    record.status.value,
                    record.error,
                ),
            )

        if rowcount > 0:
            logger.info(
                f"Marked message {record.message_id} "
                f"({record.recipient or 'no recipient'}) as {record.status.value}"
            )
            return True

        logger.debug(f"Delivery {record.message_id}/{record.recipient} already recorded")
        return False

    def records(self) -> List[ProcessingRecord]:
        """Return every record in processing order."""
        rows = self._sqlite_client.execute_query(
            f"SELECT {SELECT_COLUMNS} FROM processing_ledger ORDER BY row_id"
        )
        return [_row_to_record(row) for row in rows]

    def count(self) -> int:
        result = self._sqlite_client.execute_query("SELECT COUNT(*) FROM processing_ledger")
        return result[0][0]

    def delete(self, message_id: str, recipient: str = "") -> bool:
        """Delete the record of one delivery. Maintenance use only."""
        with self._lock:
            rowcount = self._sqlite_client.execute_write(
                "DELETE FROM processing_ledger WHERE message_id = ? AND recipient = ?",
                (message_id, recipient),
            )
        return rowcount > 0

    def delete_older_than(self, cutoff: datetime, dry_run: bool = False) -> List[ProcessingRecord]:
        """Delete records processed before the cutoff.

        Args:
            cutoff: Timezone-aware instant; older records are removed.
            dry_run: If True, only report what would be deleted.

        Returns:
            The matching records.
        """
        matched = [record for record in self.records() if record.processed_at < cutoff]
        if matched and not dry_run:
            for record in matched:
                self.delete(record.message_id, record.recipient)
            logger.info(
                f"Cleaned up {len(matched)} processed entries older than {cutoff.isoformat()}"
            )
        return matched

    def stats(self, recent_days: int = 7) -> ProcessingStats:
        """Count all, recent and failed records."""
        recent_cutoff = datetime.now(timezone.utc) - timedelta(days=recent_days)
        records = self.records()
        return ProcessingStats(
            total=len(records),
            recent=sum(1 for record in records if record.processed_at >= recent_cutoff),
            errors=sum(1 for record in records if record.status is ProcessingStatus.ERROR),
        )

    def close(self) -> None:
        """Close the database connection."""
        self._sqlite_client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with cleanup."""
        self.close()
        return False
