"""
Schema migrations for the sensor_data store.

Migration files are named <version>_<description>.sql. Applied versions are
recorded in schema_migrations so each file runs once.
"""

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Set

logger = logging.getLogger(__name__)

MIGRATIONS_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    version VARCHAR(255) PRIMARY KEY,
    name VARCHAR(255) NOT NULL,
    applied_at TIMESTAMPTZ DEFAULT NOW() NOT NULL
)
"""

MIGRATION_TEMPLATE = """-- Migration: {name}
-- Created: {created}
-- Description: {name}

-- Add your migration SQL here
"""


@dataclass(frozen=True)
class Migration:
    version: str
    name: str
    path: Path
    applied: bool = False


def split_statements(sql: str) -> List[str]:
    """Split a migration script on ';' and drop blank fragments."""
    return [statement.strip() for statement in sql.split(';') if statement.strip()]


def parse_migration_filename(path: Path) -> Migration:
    """Read version and name from <version>_<description>.sql."""
    version, _, description = path.stem.partition('_')
    if not version or not description:
        raise ValueError(f"invalid migration filename {path.name}: expected <version>_<description>.sql")
    return Migration(version=version, name=description.replace('_', ' '), path=path)


class MigrationManager:
    """Brings a database up to the current sensor_data schema.

    PostgreSQL applies pending migrations/*.sql files in version order, each
    file and its schema_migrations row in one transaction. SQLite has its
    schema embedded in SQLiteManager and tracks no files.
    """

    def __init__(self, db, migrations_dir: str = "migrations"):
        self.db = db
        self.migrations_dir = Path(migrations_dir)

    @property
    def tracks_files(self) -> bool:
        return self.db.dialect != 'sqlite'

    def migration_files(self) -> List[Migration]:
        if not self.migrations_dir.is_dir():
            return []
        migrations = [parse_migration_filename(path) for path in self.migrations_dir.glob('*.sql')]
        return sorted(migrations, key=lambda migration: migration.version)

    def ensure_migrations_table(self) -> None:
        self.db.execute_query(MIGRATIONS_TABLE_SQL, fetch=False)

    def applied_versions(self) -> Set[str]:
        rows = self.db.execute_query("SELECT version FROM schema_migrations ORDER BY version")
        return {row['version'] for row in rows}

    def pending_migrations(self) -> List[Migration]:
        applied = self.applied_versions()
        return [migration for migration in self.migration_files() if migration.version not in applied]

    def migration_status(self) -> List[Migration]:
        """Every migration file, flagged with whether it has been applied."""
        self.ensure_migrations_table()
        applied = self.applied_versions()
        return [
            replace(migration, applied=migration.version in applied)
            for migration in self.migration_files()
        ]

    def run_migration(self, migration: Migration) -> None:
        statements = split_statements(migration.path.read_text(encoding='utf-8'))
        logger.info(f"Applying {migration.path.name} ({len(statements)} statements)")

        try:
            with self.db.transaction() as cursor:
                for statement in statements:
                    cursor.execute(statement)
                cursor.execute(
                    "INSERT INTO schema_migrations (version, name) VALUES (%s, %s)",
                    (migration.version, migration.name),
                )
        except Exception as e:
            logger.error(f"Migration {migration.path.name} failed: {e}")
            raise

    def run_all_migrations(self) -> int:
        """Apply the schema; returns the number of migration files run."""
        if not self.tracks_files:
            if not self.db.initialize_schema():
                raise RuntimeError("Failed to initialize SQLite schema")
            return 0

        self.ensure_migrations_table()
        if not self.migration_files():
            logger.warning(f"No migration files under {self.migrations_dir}")
            return 0

        pending = self.pending_migrations()
        if not pending:
            logger.info("No pending migrations")
            return 0

        for migration in pending:
            self.run_migration(migration)

        logger.info(f"Applied {len(pending)} migration file(s)")
        return len(pending)

    def create_migration(self, name: str, now: Optional[datetime] = None) -> Path:
        """Write an empty migration file stamped with the current time."""
        clean_name = '_'.join(name.lower().split())
        if not clean_name:
            raise ValueError("migration name is required")

        now = now or datetime.now()
        path = self.migrations_dir / f"{now.strftime('%Y%m%d%H%M%S')}_{clean_name}.sql"
        if path.exists():
            raise FileExistsError(f"migration already exists: {path}")

        self.migrations_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(
            MIGRATION_TEMPLATE.format(name=name.strip(), created=now.strftime('%Y-%m-%d %H:%M:%S')),
            encoding='utf-8',
        )
        logger.info(f"Created migration {path}")
        return path
