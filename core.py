#!/usr/bin/env python3
"""
Core operations behind the CLI.
Contains the pipeline: resolve inputs, load, merge, post-process and write.
"""

import logging
import os
import time
from pathlib import Path
from typing import Optional, Sequence

from snapshot_report.aggregator import merge_reports
from snapshot_report.errors import InvalidInputError
from snapshot_report.models import Report
from snapshot_report.odiff import OdiffProcessor
from snapshot_report.parallel import parallel_map
from snapshot_report.report_io import load_report
from snapshot_report.reporting import OutputFormat, ReportWriteOptions
from snapshot_report.writers import write_reports
from snapshot_report.xcresult_reader import XCResultReader

logger = logging.getLogger(__name__)

XCRESULT_SUFFIX = ".xcresult"
JSON_SUFFIX = ".json"


def _scan_directory(directory: Path) -> list[Path]:
    """Report JSON files and ``.xcresult`` bundles under ``directory``, sorted."""
    matches = []
    for root, dirnames, filenames in os.walk(directory):
        bundles = [d for d in dirnames if d.endswith(XCRESULT_SUFFIX)]
        for bundle in bundles:
            matches.append(Path(root) / bundle)
            # Never descend into a bundle
            dirnames.remove(bundle)
        matches.extend(Path(root) / f for f in filenames if f.endswith(JSON_SUFFIX))
    return sorted(matches)


def resolve_inputs(files: Sequence[str] = (), directories: Sequence[str] = ()) -> list[Path]:
    """
    Expand ``--input`` files and ``--input-dir`` directories into input paths.

    Args:
        files: Report JSON files or ``.xcresult`` bundles
        directories: Directories scanned recursively

    Returns:
        Paths in argument order, duplicates removed keeping the first occurrence

    Raises:
        InvalidInputError: if a path does not exist or nothing was found
    """
    paths: list[Path] = []
    for file in files:
        path = Path(file)
        if not path.exists():
            raise InvalidInputError(f"Input not found: {path}")
        paths.append(path)

    for directory in directories:
        path = Path(directory)
        if not path.is_dir():
            raise InvalidInputError(f"Input directory not found: {path}")
        if path.name.endswith(XCRESULT_SUFFIX):
            paths.append(path)
        else:
            paths.extend(_scan_directory(path))

    resolved = list(dict.fromkeys(paths))
    if not resolved:
        raise InvalidInputError("No input reports or .xcresult bundles found")
    logger.info(f"Resolved {len(resolved)} inputs")
    return resolved


def load_input(path: Path, reader: Optional[XCResultReader] = None) -> Report:
    """Load one input: an ``.xcresult`` bundle through xcresulttool, anything else as report JSON."""
    if path.name.endswith(XCRESULT_SUFFIX):
        return (reader or XCResultReader()).read(path)
    return load_report(path)


def load_reports(paths: Sequence[Path], reader: Optional[XCResultReader] = None,
                 max_workers: Optional[int] = None) -> list[Report]:
    """Load every input in parallel; results keep the order of ``paths``."""
    reader = reader or XCResultReader(max_workers=max_workers)
    return parallel_map(lambda p: load_input(p, reader), paths, max_workers=max_workers)


def apply_metadata(report: Report, metadata: Optional[dict[str, str]]) -> Report:
    if metadata:
        report.metadata.update(metadata)
    return report


def build_report(
    paths: Sequence[Path],
    name: Optional[str] = None,
    metadata: Optional[dict[str, str]] = None,
    odiff: Optional[str] = None,
    max_workers: Optional[int] = None,
    reader: Optional[XCResultReader] = None,
) -> Report:
    """
    Load and merge the given inputs into one report.

    Args:
        paths: Resolved input paths
        name: Merged report name, defaults to the first input's name
        metadata: Overlay applied on top of the merged metadata
        odiff: Path to the odiff binary; None skips diff post-processing
        max_workers: Concurrency bound for loading
        reader: Reader used for ``.xcresult`` bundles

    Returns:
        Merged report
    """
    started = time.monotonic()
    reports = load_reports(paths, reader=reader, max_workers=max_workers)
    report = apply_metadata(merge_reports(reports, name=name), metadata)

    if odiff:
        report = OdiffProcessor(binary_path=odiff).process(report)

    summary = report.summary
    logger.info(
        f"Merged {len(reports)} inputs: {summary.total} tests, {summary.passed} passed, "
        f"{summary.failed} failed, {summary.skipped} skipped ({time.monotonic() - started:.2f}s)"
    )
    return report


def generate(
    files: Sequence[str] = (),
    directories: Sequence[str] = (),
    formats: Sequence[OutputFormat] = (OutputFormat.JSON, OutputFormat.JUNIT, OutputFormat.HTML),
    output_directory: Path = Path("snapshot-report-output"),
    html_template: Optional[Path] = None,
    name: Optional[str] = None,
    metadata: Optional[dict[str, str]] = None,
    odiff: Optional[str] = None,
    max_workers: Optional[int] = None,
    reader: Optional[XCResultReader] = None,
) -> dict:
    """
    Run the whole pipeline and write every requested format.

    Returns:
        dict with the merged report, its summary and the written paths per format
    """
    started = time.monotonic()
    paths = resolve_inputs(files, directories)
    report = build_report(paths, name=name, metadata=metadata, odiff=odiff,
                          max_workers=max_workers, reader=reader)

    options = ReportWriteOptions(
        output_directory=Path(output_directory),
        html_template_path=html_template,
        max_workers=max_workers,
    )
    written = write_reports(report, list(formats), options)
    logger.info(f"Wrote {len(written)} formats to {options.output_directory} in {time.monotonic() - started:.2f}s")

    return {
        "report": report,
        "summary": report.summary,
        "inputs": paths,
        "outputs": written,
    }
