"""
Row parser for sensor CSV files.

Pure functions only: a raw row of strings goes in, a SensorReading or a
RowParseError comes out. Logging and counting are the caller's job.
"""

import math
import re
from datetime import datetime
from typing import List, Optional, Sequence

import pytz

from sensor_import.errors import (
    EmptySensorNameError,
    InsufficientColumnsError,
    InvalidTimestampError,
    InvalidValueError,
)
from sensor_import.models import SensorReading

MIN_COLUMNS = 3

HEADER_WORDS = ('timestamp', 'time', 'date', 'datetime')

_DATE_TIME = r'(\d{4})-(\d{2})-(\d{2})%s(\d{2}):(\d{2}):(\d{2})(?:\.(\d+))?'

RFC3339_PATTERN = re.compile('^' + _DATE_TIME % 'T' + r'(Z|[+-]\d{2}:\d{2})$', re.ASCII)
ISO_NAIVE_PATTERN = re.compile('^' + _DATE_TIME % 'T' + '$', re.ASCII)
SPACE_NAIVE_PATTERN = re.compile('^' + _DATE_TIME % ' ' + '$', re.ASCII)

_FLOAT_PATTERN = re.compile(r'^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$', re.ASCII)


def _build_datetime(match: re.Match, tzinfo) -> datetime:
    year, month, day, hour, minute, second = (int(part) for part in match.groups()[:6])
    fraction = match.group(7) or ''
    microsecond = int(fraction[:6].ljust(6, '0')) if fraction else 0
    return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=tzinfo)


def _parse_offset(designator: str):
    if designator == 'Z':
        return pytz.UTC
    sign = -1 if designator[0] == '-' else 1
    hours, minutes = int(designator[1:3]), int(designator[4:6])
    return pytz.FixedOffset(sign * (hours * 60 + minutes))


def parse_rfc3339(value: str) -> Optional[datetime]:
    """Parse an RFC 3339 timestamp, returning None if it does not match."""
    match = RFC3339_PATTERN.match(value)
    if not match:
        return None
    try:
        return _build_datetime(match, _parse_offset(match.group(8)))
    except ValueError:
        return None


def _parse_naive(value: str, pattern: re.Pattern) -> Optional[datetime]:
    match = pattern.match(value)
    if not match:
        return None
    try:
        return _build_datetime(match, pytz.UTC)
    except ValueError:
        return None


def parse_iso_naive(value: str) -> Optional[datetime]:
    return _parse_naive(value, ISO_NAIVE_PATTERN)


def parse_space_naive(value: str) -> Optional[datetime]:
    return _parse_naive(value, SPACE_NAIVE_PATTERN)


# Fallback chain, tried in order; the first format that parses wins
TIMESTAMP_PARSERS = (parse_rfc3339, parse_iso_naive, parse_space_naive)


def parse_timestamp(value: str) -> Optional[datetime]:
    """Try each accepted timestamp format in order; return a UTC datetime or None."""
    candidate = value.strip()
    for parser in TIMESTAMP_PARSERS:
        parsed = parser(candidate)
        if parsed is None:
            continue
        try:
            return parsed.astimezone(pytz.UTC)
        except (OverflowError, ValueError):
            # offset pushes the instant outside datetime's year 1..9999 range
            return None
    return None


def parse_value(value: str) -> Optional[float]:
    """Parse a finite decimal number, returning None when it is not one."""
    candidate = value.strip()
    if not _FLOAT_PATTERN.match(candidate):
        return None
    try:
        parsed = float(candidate)
    except ValueError:
        return None
    if not math.isfinite(parsed):
        return None
    return parsed


def is_blank_row(row: Sequence[str]) -> bool:
    return len(row) == 0 or (len(row) == 1 and not row[0].strip())


def is_header_row(row: Sequence[str]) -> bool:
    """Heuristic check for a header on the first row of a file.

    A row counts as a header when its first column mentions a time-ish word
    or does not parse as RFC 3339. A first data row that uses one of the
    naive timestamp formats is therefore also treated as a header.
    """
    if len(row) < MIN_COLUMNS:
        return False

    first_col = row[0].strip().lower()
    if any(word in first_col for word in HEADER_WORDS):
        return True

    return parse_rfc3339(row[0].strip()) is None


def parse_row(row: Sequence[str], row_number: int, file_name: Optional[str] = None) -> SensorReading:
    """Validate a single data row.

    Raises a RowParseError subclass for the first stage that fails; callers
    must skip blank rows (see is_blank_row) before calling this.
    """
    if len(row) < MIN_COLUMNS:
        raise InsufficientColumnsError(row_number, len(row), file_name=file_name)

    timestamp_raw = row[0].strip()
    timestamp = parse_timestamp(timestamp_raw)
    if timestamp is None:
        raise InvalidTimestampError(row_number, timestamp_raw, file_name=file_name)

    sensor_name = row[1].strip()
    if not sensor_name:
        raise EmptySensorNameError(row_number, row[1], file_name=file_name)

    value_raw = row[2].strip()
    value = parse_value(value_raw)
    if value is None:
        raise InvalidValueError(row_number, value_raw, file_name=file_name)

    return SensorReading(timestamp=timestamp, sensor_name=sensor_name, value=value)


def data_rows(records: List[List[str]]) -> List[tuple]:
    """Pair each data row with its 1-based row number, dropping a detected header."""
    start = 1 if records and is_header_row(records[0]) else 0
    return [(index + 1, records[index]) for index in range(start, len(records))]
