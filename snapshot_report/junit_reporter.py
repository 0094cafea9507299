"""
JUnit XML output for CI systems.

Element and attribute names are consumed by external CI tooling and must
stay stable.
"""

from pathlib import Path
from xml.sax.saxutils import escape as _sax_escape

from .models import Report, Suite, TestCase, TestStatus, to_iso8601
from .reporting import OutputFormat, ReportWriteOptions, SnapshotReporter

JUNIT_FILENAME = "report.junit.xml"
DEFAULT_FAILURE_MESSAGE = "Snapshot assertion failed"

_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def escape(value: str) -> str:
    """Escape the five XML entities."""
    return _sax_escape(value, _ENTITIES)


def render_junit_xml(report: Report) -> str:
    summary = report.summary
    suites_xml = "\n".join(_render_suite(suite) for suite in report.suites)
    timestamp = to_iso8601(report.generated_at, timespec="seconds")
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        f'<testsuites name="{escape(report.name)}" tests="{summary.total}" failures="{summary.failed}" '
        f'skipped="{summary.skipped}" time="{float(summary.duration)}" timestamp="{timestamp}">\n'
        f"{suites_xml}\n"
        "</testsuites>"
    )


def _render_suite(suite: Suite) -> str:
    failures = sum(1 for t in suite.tests if t.status == TestStatus.FAILED)
    skipped = sum(1 for t in suite.tests if t.status == TestStatus.SKIPPED)
    total_time = float(sum(t.duration for t in suite.tests))
    cases = "\n".join(_render_case(test) for test in suite.tests)
    return (
        f'  <testsuite name="{escape(suite.name)}" tests="{len(suite.tests)}" failures="{failures}" '
        f'skipped="{skipped}" time="{total_time}">\n'
        f"{cases}\n"
        "  </testsuite>"
    )


def _render_case(test: TestCase) -> str:
    lines = [
        f'    <testcase classname="{escape(test.class_name)}" name="{escape(test.name)}" time="{float(test.duration)}">'
    ]

    if test.status == TestStatus.SKIPPED:
        lines.append("      <skipped/>")

    if test.status == TestStatus.FAILED:
        message = test.failure.message if test.failure else DEFAULT_FAILURE_MESSAGE
        body = (test.failure.diff if test.failure else None) or ""
        lines.append(f'      <failure message="{escape(message)}">{escape(body)}</failure>')

    if test.attachments:
        lines.append("      <attachments>")
        for attachment in test.attachments:
            lines.append(
                f'        <attachment name="{escape(attachment.name)}" path="{escape(attachment.path)}" '
                f'type="{attachment.type.mime_type}" />'
            )
        lines.append("      </attachments>")
        output = " | ".join(f"{a.name}: {a.path}" for a in test.attachments)
        lines.append(f"      <system-out>{escape(output)}</system-out>")

    lines.append("    </testcase>")
    return "\n".join(lines)


class JUnitReporter(SnapshotReporter):
    format = OutputFormat.JUNIT

    def write(self, report: Report, options: ReportWriteOptions) -> Path:
        path = options.output_directory / JUNIT_FILENAME
        path.write_text(render_junit_xml(report), encoding="utf-8")
        return path
