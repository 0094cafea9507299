"""Writes the merged report model as ``report.json``."""

from pathlib import Path

from .models import Report
from .report_io import save_report
from .reporting import OutputFormat, ReportWriteOptions, SnapshotReporter

JSON_FILENAME = "report.json"


class JSONReporter(SnapshotReporter):
    format = OutputFormat.JSON

    def write(self, report: Report, options: ReportWriteOptions) -> Path:
        return save_report(report, options.output_directory / JSON_FILENAME)
