"""
Ingestion worker that runs one directory scan end to end.
"""

from typing import Optional

from sensor_import.ingestion.database_operations import DEFAULT_BATCH_SIZE, SensorDataOperations
from sensor_import.ingestion.file_processor import FileProcessor
from sensor_import.ingestion.scanner import find_csv_files
from sensor_import.ingestion.worker_pool import WorkerPool
from sensor_import.monitoring.logger_config import OperationLogger
from sensor_import.monitoring.summary import ScanSummary, SummaryReporter


class IngestionWorker:
    """Wires scanner, worker pool, file processor and summary reporter.

    The persistence store is injected; the worker never opens or closes
    database connections itself.
    """

    def __init__(
        self,
        store,
        worker_count: Optional[int] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        reporter: Optional[SummaryReporter] = None
    ):
        self.store = store
        self.processor = FileProcessor(store, batch_size=batch_size)
        self.pool = WorkerPool(self.processor, worker_count=worker_count)
        self.reporter = reporter or SummaryReporter()

    @classmethod
    def from_manager(cls, db, **kwargs) -> "IngestionWorker":
        return cls(SensorDataOperations(db), **kwargs)

    def scan_directory(self, directory_path: str) -> ScanSummary:
        """Import every CSV file directly inside directory_path.

        Raises NotFoundError/ScanError before any file is touched; file-level
        failures are reported in the summary instead of being raised.
        """
        with OperationLogger("scan_directory", directory=directory_path) as log:
            jobs = find_csv_files(directory_path)

            if not jobs:
                log.info("No CSV files found in the directory")
                return ScanSummary()

            log.info(f"Found {len(jobs)} CSV file(s) to process", files=len(jobs))
            log.info(
                f"Processing with {self.pool.worker_count} parallel workers",
                workers=self.pool.worker_count,
            )

            return self.reporter.report(self.pool.run(jobs))
