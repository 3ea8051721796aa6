from __future__ import annotations

from structlog.testing import capture_logs

from sensor_import.errors import EmptyFileError
from sensor_import.models import ProcessResult
from sensor_import.monitoring.summary import ScanSummary, SummaryReporter, format_duration


def _results():
    return [
        ProcessResult(file_path="/d/b.csv", file_name="b.csv", record_count=10, error_count=2, duration=0.5),
        ProcessResult(file_path="/d/a.csv", file_name="a.csv", record_count=3, error_count=0, duration=0.25),
        ProcessResult(
            file_path="/d/c.csv",
            file_name="c.csv",
            record_count=4,
            error_count=1,
            duration=0.125,
            error=EmptyFileError("empty CSV file"),
        ),
    ]


def test_format_duration() -> None:
    assert format_duration(0.0123) == "0.012s"
    assert format_duration(2) == "2.000s"


def test_summary_counts_only_successful_records() -> None:
    summary = SummaryReporter().consume(_results())

    assert summary.totals() == (3, 2, 1, 13, 2)
    assert summary.total_duration == 0.875


def test_totals_do_not_depend_on_result_order() -> None:
    reporter = SummaryReporter()

    forward = reporter.consume(_results())
    backward = reporter.consume(reversed(_results()))

    assert forward.totals() == backward.totals()
    assert reporter.render(forward) == reporter.render(backward)


def test_render_layout() -> None:
    reporter = SummaryReporter()
    lines = reporter.render(reporter.consume(_results()))

    assert lines == [
        ("info", "=" * 60),
        ("info", "PROCESSING SUMMARY"),
        ("info", "=" * 60),
        ("info", "✅ a.csv: 3 records, 0 errors (0.250s)"),
        ("info", "✅ b.csv: 10 records, 2 errors (0.500s)"),
        ("error", "❌ c.csv: FAILED - empty CSV file"),
        ("info", "-" * 60),
        ("info", "Total files processed: 3"),
        ("info", "Successful: 2"),
        ("info", "Failed: 1"),
        ("info", "Total records imported: 13"),
        ("info", "Total parsing errors: 2"),
        ("info", "Total processing time: 0.875s"),
        ("info", "=" * 60),
    ]


def test_report_logs_each_line_and_returns_summary() -> None:
    with capture_logs() as logs:
        summary = SummaryReporter().report(_results())

    assert isinstance(summary, ScanSummary)
    assert len(logs) == 14
    assert logs[5]["log_level"] == "error"
    assert logs[1]["event"] == "PROCESSING SUMMARY"


def test_empty_summary() -> None:
    summary = SummaryReporter().consume([])

    assert summary.totals() == (0, 0, 0, 0, 0)
