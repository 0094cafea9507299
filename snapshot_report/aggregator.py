"""Merges partial snapshot reports into one aggregate report."""

import logging
from typing import Optional, Sequence

from .models import DEFAULT_REPORT_NAME, Report, Suite, utc_now

logger = logging.getLogger(__name__)


def suite_sort_key(suite: Suite):
    return (suite.name.casefold(), suite.name)


def merge_reports(reports: Sequence[Report], name: Optional[str] = None) -> Report:
    """
    Merge reports by suite name, concatenating tests per suite.

    Metadata keys from later reports override earlier ones. Suites are sorted
    case-insensitively by name and the timestamp is always regenerated.

    Args:
        reports: Reports in merge order
        name: Name for the merged report, defaults to the first report's name

    Returns:
        A new report; the inputs are not modified
    """
    if not reports:
        return Report(name=name or DEFAULT_REPORT_NAME, generated_at=utc_now())

    merged: dict[str, Suite] = {}
    metadata: dict[str, str] = {}

    for report in reports:
        metadata.update(report.metadata)
        for suite in report.suites:
            existing = merged.get(suite.name)
            if existing is None:
                merged[suite.name] = Suite(name=suite.name, tests=list(suite.tests))
            else:
                existing.tests.extend(suite.tests)

    suites = sorted(merged.values(), key=suite_sort_key)
    logger.debug(f"Merged {len(reports)} reports into {len(suites)} suites")
    return Report(
        name=name or reports[0].name,
        generated_at=utc_now(),
        suites=suites,
        metadata=metadata,
    )
