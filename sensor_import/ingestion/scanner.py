"""
Directory scanner that turns the CSV files of one directory into file jobs.
"""

import os
from typing import List

from sensor_import.errors import NotFoundError, ScanError
from sensor_import.models import FileJob

CSV_EXTENSION = '.csv'


def find_csv_files(directory_path: str) -> List[FileJob]:
    """List CSV files directly inside a directory (non-recursive).

    Subdirectories are skipped even when their name ends in .csv; the job
    list follows filesystem entry order.
    """
    if not os.path.exists(directory_path):
        raise NotFoundError(f"directory does not exist: {directory_path}")

    try:
        with os.scandir(directory_path) as entries:
            return [
                FileJob(file_path=os.path.join(directory_path, entry.name), file_name=entry.name)
                for entry in entries
                if not entry.is_dir() and os.path.splitext(entry.name)[1].lower() == CSV_EXTENSION
            ]
    except OSError as e:
        raise ScanError(f"failed to find CSV files: {e}") from e
