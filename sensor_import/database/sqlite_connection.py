"""
SQLite storage for local runs and tests.
"""

import os
import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from sensor_import.errors import DatabaseConnectionError

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS sensor_data (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp TEXT NOT NULL,
    sensor_name VARCHAR(255) NOT NULL,
    value REAL NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_timestamp_sensor ON sensor_data(timestamp, sensor_name);
CREATE INDEX IF NOT EXISTS idx_sensor_name ON sensor_data(sensor_name);
CREATE INDEX IF NOT EXISTS idx_timestamp ON sensor_data(timestamp);
CREATE INDEX IF NOT EXISTS idx_created_at ON sensor_data(created_at);
"""


class SQLiteManager:
    """SQLite counterpart of DatabaseManager.

    Nothing is pooled: every call opens its own connection, so scan workers
    can share one manager and rely on the busy timeout for writer contention.
    """

    dialect = 'sqlite'

    def __init__(self, db_path: str, timeout: float = 30.0):
        self.db_path = db_path
        self.timeout = timeout
        db_dir = os.path.dirname(db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

    @contextmanager
    def transaction(self):
        """Yield a cursor on a fresh connection; commit on success, roll back on error."""
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        try:
            yield conn.cursor()
            conn.commit()
        except Exception as e:
            conn.rollback()
            logger.debug(f"SQLite transaction rolled back: {e}")
            raise
        finally:
            conn.close()

    def execute_query(self, query: str, params: Optional[tuple] = None, fetch: bool = True):
        """Run one statement; returns rows as dicts, or the rowcount when fetch is False."""
        with self.transaction() as cursor:
            cursor.execute(query, params or ())
            if not fetch:
                return cursor.rowcount
            return [dict(row) for row in cursor.fetchall()]

    def execute_many(self, query: str, data: List[tuple]) -> int:
        """Insert every row inside one transaction."""
        with self.transaction() as cursor:
            cursor.executemany(query, data)
            return cursor.rowcount

    def health_check(self) -> bool:
        try:
            rows = self.execute_query("SELECT 1 AS health_check")
        except sqlite3.Error as e:
            logger.error(f"SQLite health check failed: {e}")
            return False
        return bool(rows) and rows[0]['health_check'] == 1

    def connect(self) -> None:
        if not self.health_check():
            raise DatabaseConnectionError(f"failed to open sqlite database: {self.db_path}")

    def close_all_connections(self) -> None:
        """Nothing to close; connections never outlive a call."""

    def pool_stats(self) -> Dict[str, Any]:
        return {'path': self.db_path}

    def initialize_schema(self) -> bool:
        """Create the sensor_data table and its indexes if missing."""
        try:
            with self.transaction() as cursor:
                cursor.executescript(SCHEMA_SQL)
        except sqlite3.Error as e:
            logger.error(f"Failed to create SQLite schema: {e}")
            return False

        logger.info(f"SQLite schema ready at {self.db_path}")
        return True
