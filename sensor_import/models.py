"""
Data model shared by the scanner, workers and persistence layer.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import pytz
from pydantic import BaseModel, ConfigDict, field_validator


class SensorReading(BaseModel):
    """Pydantic model for a validated sensor reading."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    sensor_name: str
    value: float

    @field_validator('timestamp')
    @classmethod
    def validate_timestamp(cls, v):
        if v.tzinfo is None:
            raise ValueError('Timestamp must be timezone-aware')
        return v.astimezone(pytz.UTC)

    @field_validator('sensor_name')
    @classmethod
    def validate_sensor_name(cls, v):
        if not v or not v.strip():
            raise ValueError('Sensor name is required')
        return v.strip()

    @field_validator('value')
    @classmethod
    def validate_value(cls, v):
        if not math.isfinite(v):
            raise ValueError('Value must be a finite number')
        return v


@dataclass(frozen=True)
class FileJob:
    """A CSV file queued for processing."""

    file_path: str
    file_name: str


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of processing one FileJob."""

    file_path: str
    file_name: str
    record_count: int = 0
    error_count: int = 0
    duration: float = 0.0
    error: Optional[Exception] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class PersistOutcome:
    """Counts from persisting one file's readings."""

    attempted: int = 0
    inserted: int = 0
    failed: int = 0
    duplicates: int = 0
