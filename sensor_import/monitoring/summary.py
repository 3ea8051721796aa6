"""
Summary of a directory scan, aggregated from per-file results.
"""

from dataclasses import dataclass, field
from typing import Iterable, List

import structlog

from sensor_import.models import ProcessResult

logger = structlog.get_logger(__name__)

RULE_WIDTH = 60


def format_duration(seconds: float) -> str:
    return f"{seconds:.3f}s"


@dataclass
class ScanSummary:
    """Totals over every file of one scan."""

    total_files: int = 0
    successful_files: int = 0
    failed_files: int = 0
    total_records: int = 0
    total_errors: int = 0
    total_duration: float = 0.0
    results: List[ProcessResult] = field(default_factory=list)

    def add(self, result: ProcessResult) -> None:
        self.total_files += 1
        self.total_duration += result.duration
        self.results.append(result)

        if result.failed:
            self.failed_files += 1
        else:
            self.successful_files += 1
            self.total_records += result.record_count
            self.total_errors += result.error_count

    def totals(self) -> tuple:
        """Order-independent totals, excluding timing."""
        return (
            self.total_files,
            self.successful_files,
            self.failed_files,
            self.total_records,
            self.total_errors,
        )


class SummaryReporter:
    """Consumes scan results and logs the processing summary."""

    def consume(self, results: Iterable[ProcessResult]) -> ScanSummary:
        summary = ScanSummary()
        for result in results:
            summary.add(result)
        return summary

    def render(self, summary: ScanSummary) -> List[tuple]:
        """Build the report as (level, line) pairs; file lines are sorted by name."""
        lines = [
            ('info', "=" * RULE_WIDTH),
            ('info', "PROCESSING SUMMARY"),
            ('info', "=" * RULE_WIDTH),
        ]

        for result in sorted(summary.results, key=lambda r: (r.file_name, r.file_path)):
            if result.failed:
                lines.append(('error', f"❌ {result.file_name}: FAILED - {result.error}"))
            else:
                lines.append((
                    'info',
                    f"✅ {result.file_name}: {result.record_count} records, "
                    f"{result.error_count} errors ({format_duration(result.duration)})"
                ))

        lines.extend([
            ('info', "-" * RULE_WIDTH),
            ('info', f"Total files processed: {summary.total_files}"),
            ('info', f"Successful: {summary.successful_files}"),
            ('info', f"Failed: {summary.failed_files}"),
            ('info', f"Total records imported: {summary.total_records}"),
            ('info', f"Total parsing errors: {summary.total_errors}"),
            ('info', f"Total processing time: {format_duration(summary.total_duration)}"),
            ('info', "=" * RULE_WIDTH),
        ])
        return lines

    def report(self, results: Iterable[ProcessResult]) -> ScanSummary:
        """Consume every result, then log the rendered summary."""
        summary = self.consume(results)
        for level, line in self.render(summary):
            getattr(logger, level)(line)
        return summary
