"""Bounded fast store of recently handled message ids.

A small fixed-capacity membership cache in front of the processing ledger.
Entries are evicted oldest-first in batches once the store is within its
safety margin of capacity. A miss here only means "maybe not processed";
callers must confirm against the processing ledger.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import List

from src.intake.clients import SqliteClient
from src.intake.models import FastStoreUsage, InsertResult, QuotaEntry

logger = logging.getLogger(__name__)

# SQL statements
CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS quota_entries (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    message_id TEXT NOT NULL UNIQUE,
    inserted_at TEXT NOT NULL
)
"""


class BoundedFastStore:
    """FIFO-evicting key store with a hard capacity."""

    def __init__(
        self,
        db_path: str = "fast_store.db",
        capacity: int = 50,
        safety_margin: int = 2,
        eviction_batch: int = 5,
    ):
        """Initialize the fast store.

        Args:
            db_path: Path to the SQLite database file.
            capacity: Maximum number of entries ever held.
            safety_margin: Eviction starts at ``capacity - safety_margin`` entries.
            eviction_batch: Minimum number of oldest entries evicted at once.

        Raises:
            ValueError: If the limits are inconsistent.
        """
        if safety_margin < 0 or capacity <= safety_margin:
            raise ValueError(
                f"capacity ({capacity}) must be greater than safety_margin ({safety_margin})"
            )
        if eviction_batch < 1:
            raise ValueError(f"eviction_batch must be at least 1, got {eviction_batch}")

        self._capacity = capacity
        self._safety_margin = safety_margin
        self._eviction_batch = eviction_batch
        self._lock = threading.Lock()
        self._sqlite_client = SqliteClient(db_path)
        self._sqlite_client.execute_query(CREATE_TABLE_SQL)

    def capacity(self) -> int:
        return self._capacity

    def size(self) -> int:
        result = self._sqlite_client.execute_query("SELECT COUNT(*) FROM quota_entries")
        return result[0][0]

    def contains(self, message_id: str) -> bool:
        result = self._sqlite_client.execute_query(
            "SELECT 1 FROM quota_entries WHERE message_id = ?",
            (message_id,),
        )
        return bool(result)

    def entries(self) -> List[QuotaEntry]:
        """Return all entries, oldest first."""
        rows = self._sqlite_client.execute_query(
            "SELECT message_id, inserted_at FROM quota_entries ORDER BY seq"
        )
        return [
            QuotaEntry(message_id=row[0], inserted_at=datetime.fromisoformat(row[1]))
            for row in rows
        ]

    def try_insert(self, message_id: str) -> InsertResult:
        """Insert a message id, evicting the oldest entries if needed.

        Args:
            message_id: Key to remember.

        Returns:
            InsertResult telling whether the key was new and how many entries
            were evicted to make room.
        """
        with self._lock:
            if self.contains(message_id):
                return InsertResult(inserted=False, evicted_count=0)

            evicted = self._evict_if_needed()
            inserted = self._insert(message_id)

            # Another writer on the same database may have evicted the new key
            if not self.contains(message_id):
                logger.debug(f"Fast store entry {message_id} evicted concurrently, re-inserting")
                evicted += self._evict_if_needed()
                inserted = self._insert(message_id) or inserted

            return InsertResult(inserted=inserted, evicted_count=evicted)

    def _insert(self, message_id: str) -> bool:
        rowcount = self._sqlite_client.execute_write(
            "INSERT OR IGNORE INTO quota_entries (message_id, inserted_at) VALUES (?, ?)",
            (message_id, datetime.now(timezone.utc).isoformat()),
        )
        return rowcount > 0

    def _evict_if_needed(self) -> int:
        size = self.size()
        if size < self._capacity - self._safety_margin:
            return 0

        to_evict = max(self._eviction_batch, size - self._capacity + 1)
        evicted = self._sqlite_client.execute_write(
            """DELETE FROM quota_entries WHERE seq IN (
                   SELECT seq FROM quota_entries ORDER BY seq LIMIT ?
               )""",
            (to_evict,),
        )
        logger.info(
            f"Fast store near limit ({size}/{self._capacity}); evicted {evicted} oldest entries"
        )
        return evicted

    def remove(self, message_id: str) -> bool:
        """Forget a single key."""
        with self._lock:
            rowcount = self._sqlite_client.execute_write(
                "DELETE FROM quota_entries WHERE message_id = ?",
                (message_id,),
            )
        return rowcount > 0

    def delete_older_than(self, cutoff: datetime, dry_run: bool = False) -> List[QuotaEntry]:
        """Delete entries inserted before the cutoff.

        Args:
            cutoff: Timezone-aware instant; older entries are removed.
            dry_run: If True, only report what would be deleted.

        Returns:
            The matching entries.
        """
        matched = [entry for entry in self.entries() if entry.inserted_at < cutoff]
        if matched and not dry_run:
            for entry in matched:
                self.remove(entry.message_id)
            logger.info(f"Deleted {len(matched)} fast store entries older than {cutoff.isoformat()}")
        return matched

    def usage(self) -> FastStoreUsage:
        size = self.size()
        return FastStoreUsage(
            size=size,
            capacity=self._capacity,
            percent_used=round(size * 100 / self._capacity),
            near_limit=size >= self._capacity - self._safety_margin,
            at_limit=size >= self._capacity,
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
