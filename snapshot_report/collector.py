"""
Accumulates snapshot results inside a running test process and persists them
as report JSON for the CLI to merge later.
"""

import logging
import os
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .aggregator import merge_reports
from .models import Attachment, Failure, Report, Suite, TestCase, TestStatus, utc_now
from .report_io import load_report, save_report

logger = logging.getLogger(__name__)

DEFAULT_RUNTIME_REPORT_NAME = "Snapshot Tests"

# Environment variable -> metadata key
METADATA_ENV_VARS = {
    "SCHEME_NAME": "scheme",
    "GIT_BRANCH": "branch",
    "TEST_PLAN_NAME": "testPlan",
    "TARGET_NAME": "target",
}


def _run_file_name(report_name: str) -> str:
    safe_name = re.sub(r"[^a-zA-Z0-9._-]", "-", report_name)
    return f"{safe_name}-{os.getpid()}.json"


@dataclass
class RuntimeConfiguration:
    """Where and under which name a test process persists its results."""
    report_name: str
    output_json_path: Path
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "RuntimeConfiguration":
        """
        Resolve the configuration from environment variables.

        Output path precedence: ``SNAPSHOT_REPORT_OUTPUT``, then
        ``SNAPSHOT_REPORT_OUTPUT_DIR/<name>-<pid>.json``, then
        ``$SRCROOT/.artifacts/snapshot-runs/``, then ``./snapshot-runs/``.
        """
        env = os.environ if environ is None else environ
        report_name = env.get("SNAPSHOT_REPORT_NAME") or DEFAULT_RUNTIME_REPORT_NAME
        run_file = _run_file_name(report_name)

        if env.get("SNAPSHOT_REPORT_OUTPUT"):
            output = Path(env["SNAPSHOT_REPORT_OUTPUT"])
        elif env.get("SNAPSHOT_REPORT_OUTPUT_DIR"):
            output = Path(env["SNAPSHOT_REPORT_OUTPUT_DIR"]) / run_file
        elif env.get("SRCROOT"):
            output = Path(env["SRCROOT"]) / ".artifacts" / "snapshot-runs" / run_file
        else:
            output = Path.cwd() / "snapshot-runs" / run_file

        metadata = {key: env[var] for var, key in METADATA_ENV_VARS.items() if env.get(var)}
        return cls(report_name=report_name, output_json_path=output, metadata=metadata)


class SnapshotReportCollector:
    """Thread-safe accumulator of test results, grouped by suite."""

    def __init__(self, report_name: str = DEFAULT_RUNTIME_REPORT_NAME):
        self.report_name = report_name
        self._suites: dict[str, list[TestCase]] = {}
        self._lock = threading.Lock()

    def _append(self, suite: str, test_case: TestCase):
        with self._lock:
            self._suites.setdefault(suite, []).append(test_case)

    def record_success(self, suite: str, test: str, class_name: str, duration: float,
                       attachments: Optional[list[Attachment]] = None,
                       reference_url: Optional[str] = None) -> TestCase:
        test_case = TestCase(
            name=test,
            class_name=class_name,
            status=TestStatus.PASSED,
            duration=duration,
            attachments=list(attachments or []),
            reference_url=reference_url,
        )
        self._append(suite, test_case)
        return test_case

    def record_failure(self, suite: str, test: str, class_name: str, duration: float,
                       message: str, file: Optional[str] = None, line: Optional[int] = None,
                       diff: Optional[str] = None, attachments: Optional[list[Attachment]] = None,
                       reference_url: Optional[str] = None) -> TestCase:
        test_case = TestCase(
            name=test,
            class_name=class_name,
            status=TestStatus.FAILED,
            duration=duration,
            failure=Failure(message=message, file=file, line=line, diff=diff),
            attachments=list(attachments or []),
            reference_url=reference_url,
        )
        self._append(suite, test_case)
        return test_case

    def record_skipped(self, suite: str, test: str, class_name: str, duration: float = 0.0) -> TestCase:
        test_case = TestCase(name=test, class_name=class_name, status=TestStatus.SKIPPED, duration=duration)
        self._append(suite, test_case)
        return test_case

    def record_result(self, suite: str, test: str, class_name: str, duration: float,
                      failure: Optional[str] = None, attachments: Optional[list[Attachment]] = None,
                      reference_url: Optional[str] = None) -> TestCase:
        """Record a passed result, or a failed one when ``failure`` is given."""
        if failure is not None:
            return self.record_failure(suite, test, class_name, duration, message=failure,
                                       attachments=attachments, reference_url=reference_url)
        return self.record_success(suite, test, class_name, duration,
                                   attachments=attachments, reference_url=reference_url)

    @property
    def has_records(self) -> bool:
        with self._lock:
            return bool(self._suites)

    def build_report(self, metadata: Optional[dict[str, str]] = None) -> Report:
        with self._lock:
            suites = [Suite(name=name, tests=list(tests)) for name, tests in self._suites.items()]
        suites.sort(key=lambda s: (s.name.casefold(), s.name))
        return Report(name=self.report_name, generated_at=utc_now(), suites=suites, metadata=dict(metadata or {}))

    def write_json(self, path: Path, metadata: Optional[dict[str, str]] = None) -> Path:
        return save_report(self.build_report(metadata), path)

    def flush_to_disk(self, path: Path, metadata: Optional[dict[str, str]] = None) -> Optional[Path]:
        """
        Persist the collected results, merging with a report already at ``path``.

        Returns:
            The written path, or None when nothing was recorded
        """
        if not self.has_records:
            logger.debug("No snapshot results recorded, nothing to flush")
            return None

        path = Path(path)
        current = self.build_report(metadata)
        if path.exists():
            existing = load_report(path)
            merged = merge_reports([existing, current], name=current.name)
            logger.debug(f"Merging {current.summary.total} results into existing {path}")
            return save_report(merged, path)
        return save_report(current, path)
