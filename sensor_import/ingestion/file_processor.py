"""
CSV file processor: reads one file, parses every row and persists the readings.
"""

import csv
import time
from typing import List, Tuple

import structlog

from sensor_import.errors import (
    EmptyFileError,
    FileReadError,
    PersistenceError,
    RowParseError,
)
from sensor_import.ingestion.database_operations import DEFAULT_BATCH_SIZE, persist_readings
from sensor_import.ingestion.record_parser import data_rows, is_blank_row, parse_row
from sensor_import.models import FileJob, ProcessResult, SensorReading

logger = structlog.get_logger(__name__)


def read_records(file_path: str) -> List[List[str]]:
    """Read every CSV record of a file; completely empty lines are not records."""
    try:
        with open(file_path, 'r', encoding='utf-8', newline='') as csv_file:
            reader = csv.reader(csv_file, strict=True)
            return [record for record in reader if record]
    except UnicodeDecodeError as e:
        raise FileReadError(f"failed to read CSV: file is not valid UTF-8 ({e})") from e
    except csv.Error as e:
        raise FileReadError(f"failed to read CSV: {e}") from e
    except OSError as e:
        raise FileReadError(f"failed to open file: {e}") from e


class FileProcessor:
    """Parses and persists a single sensor CSV file."""

    def __init__(self, store, batch_size: int = DEFAULT_BATCH_SIZE):
        self.store = store
        self.batch_size = batch_size

    def parse_records(self, records: List[List[str]], file_name: str) -> Tuple[List[SensorReading], int]:
        """Parse data rows in file order, skipping a detected header.

        Returns the valid readings and the number of rows that failed.
        """
        readings: List[SensorReading] = []
        error_count = 0

        for row_number, record in data_rows(records):
            if is_blank_row(record):
                continue

            try:
                readings.append(parse_row(record, row_number, file_name=file_name))
            except RowParseError as e:
                error_count += 1
                logger.warning(
                    str(e),
                    file=file_name,
                    row=row_number,
                    reason=e.reason,
                    value=e.raw_value,
                )

        return readings, error_count

    def process(self, job: FileJob) -> ProcessResult:
        """Process one file; file-level failures are returned on the result, never raised."""
        start_time = time.perf_counter()
        logger.info(f"Processing file: {job.file_name}", file=job.file_name)

        def failed(error: Exception, record_count: int = 0, error_count: int = 0) -> ProcessResult:
            duration = time.perf_counter() - start_time
            logger.error(
                f"Failed {job.file_name}: {error}",
                file=job.file_name,
                error=str(error),
                duration_seconds=round(duration, 6),
            )
            return ProcessResult(
                file_path=job.file_path,
                file_name=job.file_name,
                record_count=record_count,
                error_count=error_count,
                duration=duration,
                error=error,
            )

        try:
            records = read_records(job.file_path)
        except FileReadError as e:
            return failed(e)

        if not records:
            return failed(EmptyFileError("empty CSV file"))

        readings, error_count = self.parse_records(records, job.file_name)

        if readings:
            try:
                outcome = persist_readings(
                    self.store, readings, batch_size=self.batch_size, file_name=job.file_name
                )
            except PersistenceError as e:
                return failed(
                    PersistenceError(f"failed to insert data: {e}"),
                    record_count=len(readings),
                    error_count=error_count,
                )

            if outcome.inserted < len(readings):
                logger.warning(
                    f"Persisted {outcome.inserted} of {len(readings)} parsed records",
                    file=job.file_name,
                    parsed=len(readings),
                    inserted=outcome.inserted,
                    duplicates=outcome.duplicates,
                )

        duration = time.perf_counter() - start_time
        logger.info(
            f"✓ Completed {job.file_name}: {len(readings)} records processed, "
            f"{error_count} errors in {duration:.3f}s",
            file=job.file_name,
            records=len(readings),
            errors=error_count,
            duration_seconds=round(duration, 6),
        )

        return ProcessResult(
            file_path=job.file_path,
            file_name=job.file_name,
            record_count=len(readings),
            error_count=error_count,
            duration=duration,
        )
