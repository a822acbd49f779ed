"""Content ledger: one permanent record per unique content key.

Remembers where the artifacts of each piece of content were stored so later
deliveries of the same content can reuse them instead of storing again.
Records are write-once; there is intentionally no delete operation.
"""

import json
import logging
import threading
from datetime import datetime
from typing import List, Optional

from src.intake.clients import SqliteClient
from src.intake.models import DuplicateRecord

logger = logging.getLogger(__name__)

# SQL statements
CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS content_ledger (
    row_id INTEGER PRIMARY KEY AUTOINCREMENT,
    content_key TEXT NOT NULL UNIQUE,
    sender TEXT NOT NULL,
    sent_at TEXT NOT NULL,
    subject TEXT NOT NULL,
    attachment_names TEXT NOT NULL,
    artifact_location TEXT NOT NULL,
    first_seen_at TEXT NOT NULL
)
"""

SELECT_COLUMNS = """content_key, sender, sent_at, subject, attachment_names,
                    artifact_location, first_seen_at"""


def _row_to_record(row) -> DuplicateRecord:
    return DuplicateRecord(
        content_key=row[0],
        sender=row[1],
        sent_at=datetime.fromisoformat(row[2]),
        subject=row[3],
        attachment_names=tuple(json.loads(row[4])),
        artifact_location=row[5],
        first_seen_at=datetime.fromisoformat(row[6]),
    )


class ContentLedger:
    """Append-only store of DuplicateRecords keyed by content key."""

    def __init__(self, db_path: str = "intake_ledger.db"):
        """Initialize the content ledger.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = db_path
        self._lock = threading.Lock()
        self._sqlite_client = SqliteClient(db_path)
        self._ensure_table_exists()

    def _ensure_table_exists(self) -> None:
        """Create the ledger table if it doesn't exist."""
        self._sqlite_client.execute_query(CREATE_TABLE_SQL)
        logger.debug("Content ledger table initialized")

    def lookup(self, content_key: str) -> Optional[DuplicateRecord]:
        """Find the record for a content key.

        Args:
            content_key: Fingerprint produced by generate_content_key.

        Returns:
            DuplicateRecord if the content was seen before, None otherwise.
        """
        result = self._sqlite_client.execute_query(
            f"SELECT {SELECT_COLUMNS} FROM content_ledger WHERE content_key = ?",
            (content_key,),
        )

        if not result:
            return None

        record = _row_to_record(result[0])
        logger.debug(f"Content duplicate found: {content_key} -> {record.artifact_location}")
        return record

    def append(self, record: DuplicateRecord) -> bool:
        """Record the first sighting of a piece of content.

        Safe to repeat: a second append with the same content key leaves the
        original record in place.

        Args:
            record: The record to store.

        Returns:
            True if a new record was written, False if the key already existed.
        """
        with self._lock:
            rowcount = self._sqlite_client.execute_write(
                f"""INSERT OR IGNORE INTO content_ledger ({SELECT_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    record.content_key,
                    record.sender,
                    record.sent_at.isoformat(),
                    record.subject,
                    json.dumps(list(record.attachment_names)),
                    record.artifact_location,
                    record.first_seen_at.isoformat(),
                ),
            )

        if rowcount > 0:
            logger.info(f"Recorded content: {record.content_key}")
            return True

        logger.warning(f"Content key {record.content_key} already recorded; append ignored")
        return False

    def records(self) -> List[DuplicateRecord]:
        """Return every record in first-seen order."""
        rows = self._sqlite_client.execute_query(
            f"SELECT {SELECT_COLUMNS} FROM content_ledger ORDER BY row_id"
        )
        return [_row_to_record(row) for row in rows]

    def count(self) -> int:
        result = self._sqlite_client.execute_query("SELECT COUNT(*) FROM content_ledger")
        return result[0][0]

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
