"""
PostgreSQL connection management with a thread-safe connection pool.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

import psycopg2
from psycopg2 import pool
from psycopg2.extras import execute_values

from sensor_import.database.sqlite_connection import SQLiteManager
from sensor_import.errors import DatabaseConnectionError

logger = logging.getLogger(__name__)


class DatabaseManager:
    """PostgreSQL access for the import pipeline.

    One ThreadedConnectionPool is shared by every scan worker; each call
    borrows a connection for exactly one transaction. ThreadedConnectionPool
    raises PoolError once maxconn connections are out, so borrowers wait on
    a semaphore sized to the pool instead.
    """

    dialect = 'postgres'

    def __init__(self, database_url: str, min_connections: int = 1, max_connections: int = 10):
        if not database_url:
            raise ValueError("database_url is required")
        self.database_url = database_url
        self.min_connections = min_connections
        self.max_connections = max_connections
        self.connection_pool: Optional[pool.ThreadedConnectionPool] = None
        self._slots = threading.BoundedSemaphore(max_connections)
        self._lock = threading.Lock()
        self._in_use = 0

    def initialize_pool(self) -> None:
        with self._lock:
            if self.connection_pool is not None:
                return
            try:
                self.connection_pool = pool.ThreadedConnectionPool(
                    minconn=self.min_connections,
                    maxconn=self.max_connections,
                    dsn=self.database_url
                )
            except psycopg2.Error as e:
                logger.error(f"Could not open PostgreSQL pool: {e}")
                raise DatabaseConnectionError(f"failed to connect to database: {e}") from e

        logger.info(f"PostgreSQL pool ready ({self.min_connections}-{self.max_connections} connections)")

    def get_connection(self):
        """Borrow a connection, opening the pool on first use.

        Blocks while max_connections connections are already borrowed.
        """
        if self.connection_pool is None:
            self.initialize_pool()
        self._slots.acquire()
        try:
            connection = self.connection_pool.getconn()
        except Exception:
            self._slots.release()
            raise
        with self._lock:
            self._in_use += 1
        return connection

    def return_connection(self, connection) -> None:
        if connection is None:
            return
        try:
            if self.connection_pool is not None:
                self.connection_pool.putconn(connection)
        except psycopg2.Error as e:
            logger.warning(f"Could not return connection to pool: {e}")
        finally:
            with self._lock:
                self._in_use -= 1
            self._slots.release()

    def close_all_connections(self) -> None:
        if self.connection_pool is None:
            return
        try:
            self.connection_pool.closeall()
            logger.info("PostgreSQL pool closed")
        except psycopg2.Error as e:
            logger.error(f"Error closing PostgreSQL pool: {e}")
        finally:
            self.connection_pool = None

    @contextmanager
    def transaction(self):
        """Yield a cursor; commit on success, roll back and re-raise on error."""
        connection = self.get_connection()
        try:
            with connection.cursor() as cursor:
                yield cursor
            connection.commit()
        except Exception as e:
            connection.rollback()
            logger.debug(f"Transaction rolled back: {e}")
            raise
        finally:
            self.return_connection(connection)

    def execute_query(self, query: str, params: Optional[tuple] = None, fetch: bool = True):
        """Run one statement; returns rows as dicts, or the rowcount when fetch is False."""
        with self.transaction() as cursor:
            cursor.execute(query, params)
            if not fetch:
                return cursor.rowcount
            if cursor.description is None:
                return []
            columns = [column[0] for column in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def execute_many(self, query: str, data: List[tuple]) -> int:
        """Insert every row with a single multi-row VALUES statement."""
        with self.transaction() as cursor:
            execute_values(cursor, query, data, page_size=max(len(data), 1))
            return cursor.rowcount

    def health_check(self) -> bool:
        try:
            rows = self.execute_query("SELECT 1 AS health_check")
        except (psycopg2.Error, DatabaseConnectionError) as e:
            logger.error(f"PostgreSQL health check failed: {e}")
            return False
        return bool(rows) and rows[0]['health_check'] == 1

    def connect(self) -> None:
        """Open the pool and verify the database answers; raises DatabaseConnectionError."""
        if self.connection_pool is None:
            self.initialize_pool()
        if not self.health_check():
            raise DatabaseConnectionError("failed to ping database")

    def pool_stats(self) -> Dict[str, Any]:
        with self._lock:
            in_use = self._in_use
        return {
            'min_connections': self.min_connections,
            'max_connections': self.max_connections,
            'in_use': in_use,
            'available': self.max_connections - in_use,
        }


def build_manager(settings):
    """Create the database manager for the configured driver."""
    if settings.database_driver == 'postgres':
        return DatabaseManager(
            settings.database_url,
            min_connections=settings.pool_min_connections,
            max_connections=settings.pool_max_connections,
        )
    return SQLiteManager(settings.sqlite_path)
