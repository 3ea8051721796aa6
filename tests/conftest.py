"""Shared pytest fixtures."""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Dict, Iterable, Tuple

import pytest

from sensor_import.database.sqlite_connection import SQLiteManager
from sensor_import.errors import DuplicateReadingError, PersistenceError
from sensor_import.ingestion.database_operations import SensorDataOperations
from sensor_import.models import SensorReading


class FakeStore:
    """In-memory persistence layer with the same batch/single semantics as the database."""

    def __init__(self, broken: bool = False, fail_batches: bool = False) -> None:
        self.broken = broken
        self.fail_batches = fail_batches
        self.rows: Dict[Tuple, SensorReading] = {}
        self.batch_calls = 0
        self.insert_calls = 0
        self._lock = threading.Lock()

    @staticmethod
    def _key(reading: SensorReading) -> Tuple:
        return (reading.timestamp, reading.sensor_name)

    def preload(self, readings: Iterable[SensorReading]) -> None:
        for reading in readings:
            self.rows[self._key(reading)] = reading

    def batch_insert(self, readings) -> int:
        with self._lock:
            self.batch_calls += 1
            if self.broken or self.fail_batches:
                raise PersistenceError("batch insert failed")
            keys = [self._key(reading) for reading in readings]
            if len(set(keys)) != len(keys) or any(key in self.rows for key in keys):
                raise DuplicateReadingError("duplicate key in batch")
            for key, reading in zip(keys, readings):
                self.rows[key] = reading
            return len(readings)

    def insert(self, reading: SensorReading) -> None:
        with self._lock:
            self.insert_calls += 1
            if self.broken:
                raise PersistenceError("connection lost")
            key = self._key(reading)
            if key in self.rows:
                raise DuplicateReadingError(f"duplicate {key}")
            self.rows[key] = reading


@pytest.fixture()
def fake_store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def sqlite_manager(tmp_path: Path) -> SQLiteManager:
    manager = SQLiteManager(str(tmp_path / "db" / "sensor_data.db"))
    assert manager.initialize_schema()
    return manager


@pytest.fixture()
def sqlite_store(sqlite_manager: SQLiteManager) -> SensorDataOperations:
    return SensorDataOperations(sqlite_manager)


@pytest.fixture()
def write_csv(tmp_path: Path):
    """Write a CSV file into tmp_path/data and return its path."""

    def _write(name: str, body: str, directory: Path | None = None) -> Path:
        target_dir = directory or tmp_path / "data"
        target_dir.mkdir(parents=True, exist_ok=True)
        path = target_dir / name
        path.write_text(body, encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def store_factory():
    return FakeStore


ENV_VARS = (
    "DATABASE_DRIVER",
    "DATABASE_URL",
    "SQLITE_DB_PATH",
    "DB_POOL_MIN_CONNECTIONS",
    "DB_POOL_MAX_CONNECTIONS",
    "SCAN_WORKER_COUNT",
    "SCAN_BATCH_SIZE",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_FILE",
    "LOG_TO_CONSOLE",
    "MIGRATIONS_DIR",
)


@pytest.fixture()
def isolated_env(monkeypatch, tmp_path):
    saved = dict(os.environ)
    for name in ENV_VARS:
        os.environ.pop(name, None)
    # Keep load_dotenv from finding a developer's .env
    monkeypatch.chdir(tmp_path)
    yield
    os.environ.clear()
    os.environ.update(saved)
