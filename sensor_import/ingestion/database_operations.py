"""
Database operations for sensor readings.

Two insert levels share one row mapping: an atomic multi-row insert per
chunk, and a single-row insert used when a chunk has to be retried record
by record.
"""

import sqlite3
from typing import List, Sequence

import psycopg2
import structlog

from sensor_import.errors import DuplicateReadingError, PersistenceError
from sensor_import.models import PersistOutcome, SensorReading

logger = structlog.get_logger(__name__)

DEFAULT_BATCH_SIZE = 1000

_INSERT_QUERIES = {
    'postgres': {
        'batch': "INSERT INTO sensor_data (timestamp, sensor_name, value) VALUES %s",
        'single': "INSERT INTO sensor_data (timestamp, sensor_name, value) VALUES (%s, %s, %s)",
    },
    'sqlite': {
        'batch': "INSERT INTO sensor_data (timestamp, sensor_name, value) VALUES (?, ?, ?)",
        'single': "INSERT INTO sensor_data (timestamp, sensor_name, value) VALUES (?, ?, ?)",
    },
}

_INTEGRITY_ERRORS = (sqlite3.IntegrityError, psycopg2.IntegrityError)
_DATABASE_ERRORS = (sqlite3.Error, psycopg2.Error)


def reading_to_row(reading: SensorReading) -> tuple:
    """Map a reading onto the sensor_data insert columns."""
    timestamp = reading.timestamp.strftime('%Y-%m-%dT%H:%M:%S.%fZ')
    return (timestamp, reading.sensor_name, reading.value)


class SensorDataOperations:
    """Persistence layer for sensor_data, safe to share across scan workers."""

    def __init__(self, db):
        self.db = db
        try:
            self._queries = _INSERT_QUERIES[db.dialect]
        except KeyError:
            raise ValueError(f"Unsupported database dialect: {db.dialect}")

    def batch_insert(self, readings: Sequence[SensorReading]) -> int:
        """Insert all readings in one transaction; nothing is written if any row fails."""
        if not readings:
            return 0

        rows = [reading_to_row(reading) for reading in readings]
        try:
            self.db.execute_many(self._queries['batch'], rows)
        except _INTEGRITY_ERRORS as e:
            raise DuplicateReadingError(f"Batch insert rejected: {e}") from e
        except _DATABASE_ERRORS as e:
            raise PersistenceError(f"Batch insert failed: {e}") from e

        return len(rows)

    def insert(self, reading: SensorReading) -> None:
        """Insert a single reading."""
        try:
            self.db.execute_query(self._queries['single'], reading_to_row(reading), fetch=False)
        except _INTEGRITY_ERRORS as e:
            raise DuplicateReadingError(
                f"Duplicate reading {reading.sensor_name} at {reading.timestamp.isoformat()}"
            ) from e
        except _DATABASE_ERRORS as e:
            raise PersistenceError(f"Insert failed: {e}") from e

    def count_readings(self) -> int:
        result = self.db.execute_query("SELECT COUNT(*) AS count FROM sensor_data")
        return result[0]['count'] if result else 0


def _chunks(readings: Sequence[SensorReading], size: int):
    for start in range(0, len(readings), size):
        yield readings[start:start + size]


def insert_individually(store, chunk: Sequence[SensorReading], file_name: str = None) -> PersistOutcome:
    """Insert a chunk record by record, logging and counting each failure."""
    inserted = 0
    duplicates = 0
    other_errors: List[PersistenceError] = []

    for reading in chunk:
        try:
            store.insert(reading)
            inserted += 1
        except DuplicateReadingError as e:
            duplicates += 1
            logger.warning(
                "Failed to insert record",
                file=file_name,
                sensor_name=reading.sensor_name,
                timestamp=reading.timestamp.isoformat(),
                error=str(e),
                duplicate=True,
            )
        except PersistenceError as e:
            other_errors.append(e)
            logger.warning(
                "Failed to insert record",
                file=file_name,
                sensor_name=reading.sensor_name,
                timestamp=reading.timestamp.isoformat(),
                error=str(e),
                duplicate=False,
            )

    failed = duplicates + len(other_errors)

    if inserted == 0 and other_errors:
        raise PersistenceError(f"failed to insert any records: {other_errors[-1]}") from other_errors[-1]

    if failed:
        logger.info(
            f"Inserted {inserted} out of {len(chunk)} records with some errors",
            file=file_name,
            inserted=inserted,
            failed=failed,
        )

    return PersistOutcome(attempted=len(chunk), inserted=inserted, failed=failed, duplicates=duplicates)


def persist_readings(
    store,
    readings: Sequence[SensorReading],
    batch_size: int = DEFAULT_BATCH_SIZE,
    file_name: str = None
) -> PersistOutcome:
    """Persist readings in chunks, degrading a failed chunk to row-level inserts.

    Raises PersistenceError only when a chunk's fallback inserts nothing and
    at least one of its failures was not a duplicate key.
    """
    attempted = inserted = failed = duplicates = 0

    for chunk in _chunks(readings, batch_size):
        attempted += len(chunk)
        try:
            inserted += store.batch_insert(chunk)
            continue
        except PersistenceError as e:
            logger.warning(
                "Batch insert failed, retrying records individually",
                file=file_name,
                chunk_size=len(chunk),
                error=str(e),
            )

        outcome = insert_individually(store, chunk, file_name=file_name)
        inserted += outcome.inserted
        failed += outcome.failed
        duplicates += outcome.duplicates

    return PersistOutcome(attempted=attempted, inserted=inserted, failed=failed, duplicates=duplicates)
