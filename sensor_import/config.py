"""
Environment-driven configuration for the import pipeline.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from sensor_import.errors import ConfigError

SUPPORTED_DRIVERS = ('postgres', 'sqlite')
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')
LOG_FORMATS = ('console', 'json')


class Settings(BaseModel):
    """Validated application settings."""

    model_config = ConfigDict(frozen=True)

    database_driver: str = 'sqlite'
    database_url: Optional[str] = None
    sqlite_path: Optional[str] = 'data/sensor_data.db'
    pool_min_connections: int = 1
    pool_max_connections: int = 10
    worker_count: Optional[int] = None
    batch_size: int = 1000
    log_level: str = 'INFO'
    log_format: str = 'console'
    log_file: Optional[str] = 'result.log'
    log_to_console: bool = True
    migrations_dir: str = 'migrations'

    @field_validator('database_driver')
    @classmethod
    def validate_driver(cls, v):
        driver = v.strip().lower()
        if driver not in SUPPORTED_DRIVERS:
            raise ValueError(f'unsupported database driver: {v}')
        return driver

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        level = v.strip().upper()
        if level == 'WARN':
            level = 'WARNING'
        if level not in LOG_LEVELS:
            raise ValueError(f'invalid log level: {v}')
        return level

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        fmt = v.strip().lower()
        if fmt not in LOG_FORMATS:
            raise ValueError(f'invalid log format: {v}')
        return fmt

    @field_validator('worker_count')
    @classmethod
    def validate_worker_count(cls, v):
        if v is not None and v <= 0:
            raise ValueError('worker count must be positive')
        return v

    @field_validator('batch_size', 'pool_min_connections')
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError('must be positive')
        return v

    @model_validator(mode='after')
    def validate_database(self):
        if self.database_driver == 'postgres' and not self.database_url:
            raise ValueError('DATABASE_URL is required for the postgres driver')
        if self.database_driver == 'sqlite' and not self.sqlite_path:
            raise ValueError('SQLITE_DB_PATH is required for the sqlite driver')
        if self.pool_max_connections < self.pool_min_connections:
            raise ValueError('DB_POOL_MAX_CONNECTIONS must be >= DB_POOL_MIN_CONNECTIONS')
        return self


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


def _env_bool(name: str, default: bool) -> bool:
    value = _env(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes', 'y', 'on')


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Load settings from the environment (and a .env file, if present)."""
    load_dotenv(env_file)

    raw = {
        'database_driver': _env('DATABASE_DRIVER', 'sqlite'),
        'database_url': _env('DATABASE_URL'),
        'sqlite_path': _env('SQLITE_DB_PATH', 'data/sensor_data.db'),
        'pool_min_connections': _env('DB_POOL_MIN_CONNECTIONS', '1'),
        'pool_max_connections': _env('DB_POOL_MAX_CONNECTIONS', '10'),
        'worker_count': _env('SCAN_WORKER_COUNT'),
        'batch_size': _env('SCAN_BATCH_SIZE', '1000'),
        'log_level': _env('LOG_LEVEL', 'INFO'),
        'log_format': _env('LOG_FORMAT', 'console'),
        'log_to_console': _env_bool('LOG_TO_CONSOLE', True),
        'migrations_dir': _env('MIGRATIONS_DIR', 'migrations'),
    }

    # An explicitly empty LOG_FILE disables file logging
    log_file = os.getenv('LOG_FILE')
    raw['log_file'] = 'result.log' if log_file is None else (log_file.strip() or None)

    try:
        return Settings(**raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e
