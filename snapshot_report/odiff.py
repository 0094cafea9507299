"""
Runs the ``odiff`` binary for failed tests that carry both a reference
("Snapshot") and a captured ("Actual Snapshot") image, appending the
highlighted diff as an "odiff" attachment.
"""

import dataclasses
import logging
import subprocess
import tempfile
import uuid
from pathlib import Path
from typing import Optional

from .models import Attachment, AttachmentType, Report, Suite, TestCase, TestStatus

logger = logging.getLogger(__name__)

DEFAULT_ODIFF_BINARY = "odiff"
REFERENCE_NAME = "Snapshot"
ACTUAL_NAME = "Actual Snapshot"
ODIFF_NAME = "odiff"


class OdiffProcessor:
    """Adds odiff images to failed snapshot tests."""

    def __init__(self, binary_path: str = DEFAULT_ODIFF_BINARY, scratch_dir: Optional[Path] = None):
        self.binary_path = binary_path
        self.scratch_dir = Path(scratch_dir) if scratch_dir else Path(tempfile.gettempdir())

    def process(self, report: Report) -> Report:
        """Return a copy of ``report`` with odiff attachments added where a diff was produced."""
        suites = [
            Suite(name=suite.name, tests=[self.process_test(test) for test in suite.tests])
            for suite in report.suites
        ]
        return dataclasses.replace(report, suites=suites)

    def process_test(self, test: TestCase) -> TestCase:
        if test.status != TestStatus.FAILED:
            return test

        reference = next((a for a in test.attachments if a.name == REFERENCE_NAME), None)
        actual = next((a for a in test.attachments if a.name == ACTUAL_NAME), None)
        if reference is None or actual is None:
            return test

        output = self.scratch_dir / f"odiff-{test.id}-{str(uuid.uuid4()).upper()}.png"
        self._run(reference.path, actual.path, output)

        # Exit codes: 0 identical, 1 diff written, 2 error. Only the file matters.
        if not output.exists():
            return test

        diff = Attachment(name=ODIFF_NAME, type=AttachmentType.PNG, path=str(output))
        return dataclasses.replace(test, attachments=test.attachments + [diff])

    def _run(self, reference: str, actual: str, output: Path):
        try:
            subprocess.run(
                [self.binary_path, reference, actual, str(output)],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError as e:
            logger.debug(f"odiff unavailable ({self.binary_path}): {e}")
