"""Dispatch from output format to reporter."""

import logging
from pathlib import Path

from .html_reporter import HTMLReporter
from .json_reporter import JSONReporter
from .junit_reporter import JUnitReporter
from .models import Report
from .parallel import parallel_map
from .reporting import OutputFormat, ReportWriteOptions, SnapshotReporter

logger = logging.getLogger(__name__)

_REPORTERS = {
    OutputFormat.JSON: JSONReporter,
    OutputFormat.JUNIT: JUnitReporter,
    OutputFormat.HTML: HTMLReporter,
}


def reporter_for(output_format: OutputFormat) -> SnapshotReporter:
    return _REPORTERS[output_format]()


def write_report(report: Report, output_format: OutputFormat, options: ReportWriteOptions) -> Path:
    path = reporter_for(output_format).write(report, options)
    logger.debug(f"Wrote {output_format.value} report to {path}")
    return path


def write_reports(report: Report, formats: list[OutputFormat],
                  options: ReportWriteOptions) -> dict[OutputFormat, Path]:
    """
    Write ``report`` in every requested format, one worker per format.

    Args:
        report: Merged report
        formats: Formats to write, duplicates ignored
        options: Output directory, template and concurrency settings

    Returns:
        Mapping of format to the main artifact written for it
    """
    formats = list(dict.fromkeys(formats))
    options.output_directory.mkdir(parents=True, exist_ok=True)

    paths = parallel_map(
        lambda fmt: write_report(report, fmt, options),
        formats,
        max_workers=options.max_workers,
    )
    return dict(zip(formats, paths))
