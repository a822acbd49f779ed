import sqlite3
import threading
from sqlite3 import Connection

from src.intake.errors import LedgerUnavailableError


class SqliteClient:
    """SQLite database client with connection management.

    One connection is shared by every thread of the process; statements are
    serialized through an internal lock.
    """

    def __init__(self, connection_string: str):
        self.connection_string = connection_string
        try:
            self._connection = sqlite3.connect(
                self.connection_string,
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise LedgerUnavailableError(
                f"Cannot open database {connection_string}: {e}"
            ) from e
        self._lock = threading.RLock()

    @property
    def connection(self) -> Connection:
        """Get the database connection."""
        return self._connection

    def execute_query(self, query: str, params=None):
        """Execute a query and return all results."""
        with self._lock:
            try:
                cursor = self._connection.cursor()
                if params:
                    cursor.execute(query, params)
                else:
                    cursor.execute(query)

                # Commit for write operations (INSERT, UPDATE, DELETE)
                if query.strip().upper().startswith(("INSERT", "UPDATE", "DELETE")):
                    self._connection.commit()

                results = cursor.fetchall()
                cursor.close()
                return results
            except sqlite3.Error as e:
                raise LedgerUnavailableError(
                    f"Query failed on {self.connection_string}: {e}"
                ) from e

    def execute_write(self, query: str, params=None) -> int:
        """Execute a write statement, commit it and return the affected row count."""
        with self._lock:
            try:
                cursor = self._connection.cursor()
                if params:
                    cursor.execute(query, params)
                else:
                    cursor.execute(query)
                self._connection.commit()
                rowcount = cursor.rowcount
                cursor.close()
                return rowcount
            except sqlite3.Error as e:
                raise LedgerUnavailableError(
                    f"Write failed on {self.connection_string}: {e}"
                ) from e

    def close(self):
        """Close the database connection."""
        with self._lock:
            self._connection.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit with cleanup."""
        self.close()
        return False
