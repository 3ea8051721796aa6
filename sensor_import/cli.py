"""
Command line interface for the sensor data import tool.
"""

import argparse
import json
import sys
from typing import List, Optional

import structlog

from sensor_import.config import load_settings
from sensor_import.database.connection import build_manager
from sensor_import.database.migrate import MigrationManager
from sensor_import.errors import ConfigError, DatabaseConnectionError, ScanError
from sensor_import.ingestion.worker import IngestionWorker
from sensor_import.monitoring.health import DatabaseInfo
from sensor_import.monitoring.logger_config import setup_logging
from sensor_import.tools.csv_generator import SensorCSVGenerator

logger = structlog.get_logger("sensor_import.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='sensor-import',
        description='Sensor data import - scan CSV files into a relational store',
        epilog='CSV format: timestamp,sensor_name,value (timestamp e.g. 2025-09-05T12:30:45Z)',
    )
    parser.add_argument('--env-file', help='Path to a .env file with configuration')
    subparsers = parser.add_subparsers(dest='command', required=True)

    scan = subparsers.add_parser('scan', help='Import sensor data from the CSV files in a directory (non-recursive)')
    scan.add_argument('directory', help='Directory containing CSV files')
    scan.add_argument('--workers', '-w', type=int, help='Number of parallel workers (default: CPU count, max 8)')

    subparsers.add_parser('connect', help='Test database connection')
    subparsers.add_parser('migrate', help='Create or update the database schema')
    subparsers.add_parser('migrate-status', help='List migration files and whether each has been applied')
    create = subparsers.add_parser('migrate-create', help='Write a new empty migration file')
    create.add_argument('name', help='Migration description, e.g. "add sensor location"')
    subparsers.add_parser('db-info', help='Show database information')

    generate = subparsers.add_parser('generate-data', help='Write sample sensor CSV files')
    generate.add_argument('directory', help='Output directory')
    generate.add_argument('--days', '-d', type=int, default=7, help='Number of days of data per file')
    generate.add_argument('--seed', type=int, help='Random seed for reproducible output')

    return parser


def _connect(settings):
    db = build_manager(settings)
    db.connect()
    return db


def scan_command(settings, directory: str, workers: Optional[int]) -> int:
    logger.info(f"Scanning directory: {directory}", directory=directory)

    try:
        db = _connect(settings)
    except DatabaseConnectionError as e:
        logger.error(f"Failed to connect to database: {e}")
        return 1

    try:
        worker = IngestionWorker.from_manager(
            db,
            worker_count=workers or settings.worker_count,
            batch_size=settings.batch_size,
        )
        worker.scan_directory(directory)
    except ScanError as e:
        logger.error(f"Scan failed: {e}")
        return 1
    finally:
        db.close_all_connections()

    logger.info("✓ Directory scan completed successfully")
    return 0


def connect_command(settings) -> int:
    logger.info("Testing database connection...")
    try:
        db = _connect(settings)
    except DatabaseConnectionError as e:
        logger.error(f"Connection failed: {e}")
        return 1

    try:
        logger.info(f"✓ Successfully connected to {settings.database_driver} database")
        info = DatabaseInfo(db, settings.database_driver).get_info()
        logger.info(f"Connection info: {json.dumps(info, indent=2, default=str)}")
    finally:
        db.close_all_connections()
    return 0


def migrate_command(settings) -> int:
    logger.info("Running database migrations...")
    try:
        db = _connect(settings)
    except DatabaseConnectionError as e:
        logger.error(f"Failed to connect to database: {e}")
        return 1

    try:
        MigrationManager(db, settings.migrations_dir).run_all_migrations()
    except Exception as e:
        logger.error(f"Migration failed: {e}")
        return 1
    finally:
        db.close_all_connections()

    logger.info("✓ Database schema is up to date")
    return 0


def migrate_status_command(settings) -> int:
    if settings.database_driver == 'sqlite':
        print("SQLite uses the embedded schema; run 'migrate' to create it. No migration files are tracked.")
        return 0

    try:
        db = _connect(settings)
    except DatabaseConnectionError as e:
        print(f"Failed to connect to database: {e}", file=sys.stderr)
        return 1

    try:
        migrations = MigrationManager(db, settings.migrations_dir).migration_status()
    except Exception as e:
        print(f"Failed to read migration status: {e}", file=sys.stderr)
        return 1
    finally:
        db.close_all_connections()

    print("Migration Status:")
    print("=" * 50)
    if not migrations:
        print(f"No migration files under {settings.migrations_dir}")
    for migration in migrations:
        mark, state = ('✓', 'applied') if migration.applied else ('✗', 'pending')
        print(f"{mark} {migration.version}  {migration.name}  ({state})")
    return 0


def migrate_create_command(settings, name: str) -> int:
    try:
        path = MigrationManager(None, settings.migrations_dir).create_migration(name)
    except (ValueError, OSError) as e:
        logger.error(f"Could not create migration: {e}")
        return 1

    logger.info(f"✓ Created migration file: {path}")
    return 0


def db_info_command(settings) -> int:
    db = build_manager(settings)
    try:
        print(DatabaseInfo(db, settings.database_driver).render())
    except DatabaseConnectionError as e:
        print(f"Failed to connect to database: {e}", file=sys.stderr)
        return 1
    finally:
        db.close_all_connections()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command == 'generate-data':
        SensorCSVGenerator(days=args.days, seed=args.seed).generate(args.directory)
        print("All mocked data generated.")
        return 0

    try:
        settings = load_settings(args.env_file)
    except ConfigError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    if args.command not in ('db-info', 'migrate-status'):
        setup_logging(settings)

    if args.command == 'scan':
        return scan_command(settings, args.directory, args.workers)
    if args.command == 'connect':
        return connect_command(settings)
    if args.command == 'migrate':
        return migrate_command(settings)
    if args.command == 'migrate-status':
        return migrate_status_command(settings)
    if args.command == 'migrate-create':
        return migrate_create_command(settings, args.name)
    return db_info_command(settings)


if __name__ == "__main__":
    sys.exit(main())
