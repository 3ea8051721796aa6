from __future__ import annotations

import threading
import time
from datetime import datetime
from pathlib import Path

import psycopg2
import pytest
from psycopg2.pool import PoolError

from sensor_import import cli
from sensor_import.config import Settings
from sensor_import.database import connection
from sensor_import.database.connection import DatabaseManager, build_manager
from sensor_import.database.migrate import MigrationManager, parse_migration_filename, split_statements
from sensor_import.database.sqlite_connection import SQLiteManager
from sensor_import.errors import DatabaseConnectionError
from sensor_import.monitoring.health import DatabaseInfo

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn
        self.description = None
        self.rowcount = 0
        self.rows = []

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query, params=None):
        self.conn.statements.append(query)
        if self.conn.pool.delay:
            time.sleep(self.conn.pool.delay)
        if self.conn.fail or "BROKEN" in query:
            raise psycopg2.OperationalError("server closed the connection")
        if query.startswith("SELECT 1"):
            self.description = [("health_check",)]
            self.rows = [(1,)]
            self.rowcount = 1
        elif query.startswith("SELECT version FROM schema_migrations"):
            self.description = [("version",)]
            self.rows = [(version,) for version in sorted(self.conn.pool.applied)]
        elif query.startswith("INSERT INTO schema_migrations"):
            self.conn.recorded.append(params)

    def fetchall(self):
        return self.rows


class FakeConnection:
    def __init__(self, pool):
        self.pool = pool
        self.fail = False
        self.statements = []
        self.recorded = []
        self.commits = 0
        self.rollbacks = 0

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1
        self.pool.applied.update(dict(self.recorded))
        self.recorded = []

    def rollback(self):
        self.rollbacks += 1
        self.recorded = []


class FakePool:
    """Mirrors ThreadedConnectionPool: getconn fails once maxconn connections are out."""

    def __init__(self, minconn, maxconn, dsn):
        self.maxconn = maxconn
        self.delay = 0
        self.applied = {}
        self.conn = FakeConnection(self)
        self.idle = [self.conn]
        self.borrowed = 0
        self.peak = 0
        self.lock = threading.Lock()
        self.closed = False

    def getconn(self):
        with self.lock:
            if self.borrowed >= self.maxconn:
                raise PoolError("connection pool exhausted")
            self.borrowed += 1
            self.peak = max(self.peak, self.borrowed)
            return self.idle.pop() if self.idle else FakeConnection(self)

    def putconn(self, conn):
        with self.lock:
            self.borrowed -= 1
            self.idle.append(conn)

    def closeall(self):
        self.closed = True


@pytest.fixture()
def fake_pool(monkeypatch):
    created = []

    def factory(minconn, maxconn, dsn):
        created.append(FakePool(minconn, maxconn, dsn))
        return created[-1]

    monkeypatch.setattr(connection.pool, "ThreadedConnectionPool", factory)
    return created


@pytest.fixture()
def migrations_dir(tmp_path):
    def write(files):
        directory = tmp_path / "migrations"
        directory.mkdir(exist_ok=True)
        for name, sql in files.items():
            (directory / name).write_text(sql, encoding="utf-8")
        return directory

    return write


def test_build_manager_picks_driver(tmp_path) -> None:
    sqlite = build_manager(Settings(sqlite_path=str(tmp_path / "x.db")))
    postgres = build_manager(Settings(database_driver="postgres", database_url="postgresql://localhost/db"))

    assert isinstance(sqlite, SQLiteManager)
    assert isinstance(postgres, DatabaseManager)
    assert postgres.max_connections == 10


def test_postgres_connect_and_stats(fake_pool) -> None:
    db = DatabaseManager("postgresql://localhost/db", min_connections=1, max_connections=4)

    db.connect()

    assert db.pool_stats() == {"min_connections": 1, "max_connections": 4, "in_use": 0, "available": 4}
    assert fake_pool[0].conn.commits == 1

    db.close_all_connections()
    assert fake_pool[0].closed
    assert db.connection_pool is None


def test_postgres_pool_failure_raises_connection_error(monkeypatch) -> None:
    def refuse(**kwargs):
        raise psycopg2.OperationalError("connection refused")

    monkeypatch.setattr(connection.pool, "ThreadedConnectionPool", refuse)

    with pytest.raises(DatabaseConnectionError, match="connection refused"):
        DatabaseManager("postgresql://localhost/db").connect()


def test_postgres_failed_query_rolls_back(fake_pool) -> None:
    db = DatabaseManager("postgresql://localhost/db")
    db.initialize_pool()
    fake_pool[0].conn.fail = True

    with pytest.raises(psycopg2.OperationalError):
        db.execute_query("DELETE FROM sensor_data", fetch=False)

    assert fake_pool[0].conn.rollbacks == 1
    assert not db.health_check()


def test_postgres_borrowers_wait_for_a_free_connection(fake_pool) -> None:
    db = DatabaseManager("postgresql://localhost/db", min_connections=1, max_connections=2)
    db.initialize_pool()
    fake_pool[0].delay = 0.05
    errors = []

    def query():
        try:
            db.execute_query("SELECT 1 AS health_check")
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=query) for _ in range(6)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5)

    assert errors == []
    assert fake_pool[0].peak <= 2
    assert db.pool_stats()["in_use"] == 0


def test_postgres_failed_borrow_frees_its_slot(fake_pool) -> None:
    db = DatabaseManager("postgresql://localhost/db", min_connections=1, max_connections=1)
    db.initialize_pool()
    fake_pool[0].borrowed = 1

    with pytest.raises(PoolError):
        db.get_connection()

    fake_pool[0].borrowed = 0
    assert db.health_check()
    assert db.pool_stats()["available"] == 1


def test_postgres_migrations_run_every_statement(fake_pool) -> None:
    db = DatabaseManager("postgresql://localhost/db")

    applied = MigrationManager(db, str(MIGRATIONS_DIR)).run_all_migrations()

    assert applied == len(list(MIGRATIONS_DIR.glob("*.sql")))
    statements = fake_pool[0].conn.statements
    assert any("CREATE TABLE IF NOT EXISTS sensor_data" in statement for statement in statements)
    assert any("UNIQUE INDEX" in statement for statement in statements)


def test_postgres_migrations_are_recorded_and_not_rerun(fake_pool) -> None:
    db = DatabaseManager("postgresql://localhost/db")
    manager = MigrationManager(db, str(MIGRATIONS_DIR))

    assert manager.run_all_migrations() == 1
    assert fake_pool[0].applied == {"001": "create sensor data table"}

    statements_before = len(fake_pool[0].conn.statements)
    assert manager.run_all_migrations() == 0
    assert not any(
        "CREATE TABLE IF NOT EXISTS sensor_data" in statement
        for statement in fake_pool[0].conn.statements[statements_before:]
    )


def test_postgres_runs_only_pending_migrations(fake_pool, migrations_dir) -> None:
    directory = migrations_dir({
        "001_create_a.sql": "CREATE TABLE a (id INT);",
        "002_create_b.sql": "CREATE TABLE b (id INT);",
    })
    db = DatabaseManager("postgresql://localhost/db")
    db.initialize_pool()
    fake_pool[0].applied["001"] = "create a"
    manager = MigrationManager(db, str(directory))

    assert [(m.version, m.name, m.applied) for m in manager.migration_status()] == [
        ("001", "create a", True),
        ("002", "create b", False),
    ]
    assert manager.run_all_migrations() == 1

    statements = fake_pool[0].conn.statements
    assert "CREATE TABLE b (id INT)" in statements
    assert "CREATE TABLE a (id INT)" not in statements
    assert all(m.applied for m in manager.migration_status())


def test_postgres_failed_migration_is_not_recorded(fake_pool, migrations_dir) -> None:
    directory = migrations_dir({
        "001_create_a.sql": "CREATE TABLE a (id INT);",
        "002_broken.sql": "CREATE TABLE b (id INT);\nBROKEN STATEMENT;",
    })
    db = DatabaseManager("postgresql://localhost/db")

    with pytest.raises(psycopg2.OperationalError):
        MigrationManager(db, str(directory)).run_all_migrations()

    assert fake_pool[0].applied == {"001": "create a"}
    assert fake_pool[0].conn.rollbacks == 1


def test_migration_filename_needs_version_and_description(tmp_path) -> None:
    migration = parse_migration_filename(tmp_path / "20250905050500_create_sensor_data_table.sql")

    assert (migration.version, migration.name) == ("20250905050500", "create sensor data table")
    with pytest.raises(ValueError, match="invalid migration filename"):
        parse_migration_filename(tmp_path / "schema.sql")


def test_create_migration_writes_template(tmp_path) -> None:
    manager = MigrationManager(None, str(tmp_path / "migrations"))
    created = datetime(2025, 10, 19, 15, 30, 0)

    path = manager.create_migration("Add Sensor  Location", now=created)

    assert path.name == "20251019153000_add_sensor_location.sql"
    content = path.read_text(encoding="utf-8")
    assert content.startswith("-- Migration: Add Sensor  Location\n-- Created: 2025-10-19 15:30:00\n")
    assert [m.version for m in manager.migration_files()] == ["20251019153000"]

    with pytest.raises(FileExistsError):
        manager.create_migration("add sensor location", now=created)
    with pytest.raises(ValueError, match="name is required"):
        manager.create_migration("   ")


def test_migrate_status_command_lists_postgres_migrations(isolated_env, monkeypatch, fake_pool, capsys) -> None:
    monkeypatch.setenv("DATABASE_DRIVER", "postgres")
    monkeypatch.setenv("DATABASE_URL", "postgresql://localhost/db")
    monkeypatch.setenv("MIGRATIONS_DIR", str(MIGRATIONS_DIR))

    assert cli.main(["migrate-status"]) == 0

    out = capsys.readouterr().out
    assert "Migration Status:" in out
    assert "✗ 001  create sensor data table  (pending)" in out
    assert fake_pool[0].closed


def test_sqlite_migration_creates_schema(tmp_path) -> None:
    db = SQLiteManager(str(tmp_path / "fresh.db"))

    assert MigrationManager(db, str(tmp_path / "none")).run_all_migrations() == 0

    tables = db.execute_query("SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'sensor_data'")
    assert tables == [{"name": "sensor_data"}]


def test_database_info_statistics(sqlite_manager, sqlite_store) -> None:
    sqlite_manager.execute_many(
        "INSERT INTO sensor_data (timestamp, sensor_name, value) VALUES (?, ?, ?)",
        [
            ("2025-09-05T08:00:00.000000Z", "temp_01", 1.0),
            ("2025-09-05T09:00:00.000000Z", "temp_02", 2.0),
        ],
    )

    info = DatabaseInfo(sqlite_manager, "sqlite").get_info()

    assert info["connected"] is True
    assert info["data"]["total_records"] == 2
    assert info["data"]["unique_sensors"] == 2
    assert info["data"]["earliest"] == "2025-09-05T08:00:00.000000Z"


def test_database_info_reports_missing_table(tmp_path) -> None:
    rendered = DatabaseInfo(SQLiteManager(str(tmp_path / "empty.db")), "sqlite").render()

    assert "Data Information unavailable" in rendered


def test_split_statements_drops_empty_fragments() -> None:
    sql = "CREATE TABLE a (id INT);\n\n  CREATE INDEX i ON a (id);  ;\n"

    assert split_statements(sql) == ["CREATE TABLE a (id INT)", "CREATE INDEX i ON a (id)"]
