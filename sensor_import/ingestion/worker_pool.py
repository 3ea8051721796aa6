"""
Fixed-size worker pool that fans file jobs out to threads and results back in.
"""

import os
import queue
import threading
import time
from typing import Iterator, Optional, Sequence

import structlog

from sensor_import.models import FileJob, ProcessResult

logger = structlog.get_logger(__name__)

MAX_WORKERS = 8

# Close marker for both queues
_CLOSED = object()


def default_worker_count() -> int:
    """Available parallelism, capped so the database is not flooded with writers."""
    return min(os.cpu_count() or 1, MAX_WORKERS)


class WorkerPool:
    """Runs a FileProcessor over a list of jobs on a fixed set of threads.

    Jobs flow in over one queue and results flow out over another; workers
    share nothing else. The results queue is closed only after every worker
    has exited, so consuming run() to exhaustion yields one result per job.
    """

    def __init__(self, processor, worker_count: Optional[int] = None):
        self.processor = processor
        self.worker_count = default_worker_count()
        if worker_count is not None:
            self.set_worker_count(worker_count)

    def set_worker_count(self, count: int) -> None:
        """Override the pool size; non-positive values are ignored."""
        if count > 0:
            self.worker_count = count

    def run(self, jobs: Sequence[FileJob]) -> Iterator[ProcessResult]:
        """Process all jobs and yield results in completion order."""
        jobs_queue: queue.Queue = queue.Queue(maxsize=len(jobs) + self.worker_count)
        results_queue: queue.Queue = queue.Queue()

        workers = [
            threading.Thread(
                target=self._worker,
                args=(jobs_queue, results_queue),
                name=f"scan-worker-{index + 1}",
                daemon=True,
            )
            for index in range(self.worker_count)
        ]
        for worker in workers:
            worker.start()

        for job in jobs:
            jobs_queue.put(job)
        for _ in workers:
            jobs_queue.put(_CLOSED)

        supervisor = threading.Thread(
            target=self._supervise,
            args=(workers, results_queue),
            name="scan-supervisor",
            daemon=True,
        )
        supervisor.start()

        while True:
            result = results_queue.get()
            if result is _CLOSED:
                break
            yield result

        supervisor.join()

    def _worker(self, jobs_queue: queue.Queue, results_queue: queue.Queue) -> None:
        while True:
            job = jobs_queue.get()
            if job is _CLOSED:
                return
            results_queue.put(self._process(job))

    def _process(self, job: FileJob) -> ProcessResult:
        start_time = time.perf_counter()
        try:
            return self.processor.process(job)
        except Exception as e:
            logger.exception("Unexpected error while processing file", file=job.file_name)
            return ProcessResult(
                file_path=job.file_path,
                file_name=job.file_name,
                duration=time.perf_counter() - start_time,
                error=e,
            )

    @staticmethod
    def _supervise(workers, results_queue: queue.Queue) -> None:
        for worker in workers:
            worker.join()
        results_queue.put(_CLOSED)
