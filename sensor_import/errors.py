"""
Exception taxonomy for the import pipeline.

Fatal errors abort a run before any file is processed, file-level errors
end up on a ProcessResult, and row/record-level errors are logged and
counted without leaving the component that raised them.
"""

from typing import Optional


class SensorImportError(Exception):
    """Base class for all pipeline errors."""


# Fatal / setup

class ConfigError(SensorImportError):
    """Configuration is missing or invalid."""


class DatabaseConnectionError(SensorImportError):
    """The database could not be reached."""


class ScanError(SensorImportError):
    """The directory could not be listed."""


class NotFoundError(ScanError):
    """The directory to scan does not exist."""


# File-level terminal

class FileReadError(SensorImportError, IOError):
    """The file could not be opened or its CSV structure is unreadable."""


class EmptyFileError(SensorImportError):
    """The file contains no rows at all, not even a header."""


class PersistenceError(SensorImportError):
    """A database write failed."""


class DuplicateReadingError(PersistenceError):
    """A reading conflicts with the (timestamp, sensor_name) unique index."""


# Row-level recoverable

class RowParseError(SensorImportError):
    """A single CSV row failed validation."""

    reason = "invalid row"

    def __init__(self, row_number: int, raw_value: str = None, file_name: Optional[str] = None):
        self.row_number = row_number
        self.raw_value = raw_value
        self.file_name = file_name
        super().__init__(self._describe())

    def _describe(self) -> str:
        location = f"Row {self.row_number}"
        if self.file_name:
            location += f" in {self.file_name}"
        if self.raw_value is None:
            return f"{location} has {self.reason}"
        return f"{location} has {self.reason}: {self.raw_value!r}"


class InsufficientColumnsError(RowParseError):
    reason = "insufficient columns"

    def __init__(self, row_number: int, column_count: int, file_name: Optional[str] = None):
        self.column_count = column_count
        super().__init__(row_number, raw_value=str(column_count), file_name=file_name)

    def _describe(self) -> str:
        location = f"Row {self.row_number}"
        if self.file_name:
            location += f" in {self.file_name}"
        return f"{location} has insufficient columns (expected 3, got {self.column_count})"


class InvalidTimestampError(RowParseError):
    reason = "invalid timestamp format"


class EmptySensorNameError(RowParseError):
    reason = "empty sensor name"


class InvalidValueError(RowParseError):
    reason = "invalid value"
