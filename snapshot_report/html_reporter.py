"""
Static HTML report with copied attachments.

Layout written under the output directory::

    html/index.html
    html/attachments/<testID>-<sanitized-filename>[-<hash>].<ext>
"""

import logging
import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from . import attachment_groups as groups
from .errors import WriteFailedError
from .models import Attachment, Report, Suite, TestCase, TestStatus, to_iso8601
from .parallel import parallel_map
from .reporting import OutputFormat, ReportWriteOptions, SnapshotReporter

logger = logging.getLogger(__name__)

HTML_DIRNAME = "html"
ATTACHMENTS_DIRNAME = "attachments"
INDEX_FILENAME = "index.html"
MAX_FILENAME_BYTES = 240

TEMPLATE_ENV_VAR = "SNAPSHOT_REPORT_HTML_TEMPLATE"
DEFAULT_TEMPLATE = Path(__file__).parent / "templates" / "default-report.html.j2"

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9._-]")

_FNV_OFFSET = 0xcbf29ce484222325
_FNV_PRIME = 0x100000001b3


def sanitize_filename(value: str) -> str:
    return _UNSAFE_CHARS.sub("-", value)


def short_hash(value: str) -> str:
    """64-bit FNV-1a of the UTF-8 bytes, as 16 hex digits."""
    digest = _FNV_OFFSET
    for byte in value.encode("utf-8"):
        digest ^= byte
        digest = (digest * _FNV_PRIME) & 0xFFFFFFFFFFFFFFFF
    return f"{digest:016x}"


def shorten_filename(filename: str, max_bytes: int, hash_seed: str) -> tuple[str, Optional[str]]:
    """
    Keep ``filename`` within ``max_bytes``.

    Over-long names keep their extension and get a hash of ``hash_seed``
    appended to a truncated base.

    Returns:
        Tuple of (filename, warning). The warning is None when nothing changed.
    """
    if len(filename.encode("utf-8")) <= max_bytes:
        return filename, None

    base, ext = os.path.splitext(filename)
    suffix = f"-{short_hash(hash_seed)}{ext}"
    available = max(1, max_bytes - len(suffix.encode("utf-8")))
    shortened_base = base.encode("utf-8")[:available].decode("utf-8", errors="ignore")
    shortened = shortened_base + suffix
    warning = f"Attachment filename exceeded {max_bytes} bytes and was shortened: {filename} -> {shortened}"
    return shortened, warning


def resolve_template_path(custom_path: Optional[Path] = None) -> Path:
    """Custom path, then ``$SNAPSHOT_REPORT_HTML_TEMPLATE``, then the bundled template."""
    if custom_path is not None:
        if not Path(custom_path).is_file():
            raise WriteFailedError(f"HTML template not found: {custom_path}")
        return Path(custom_path)

    candidates = []
    env_template = os.environ.get(TEMPLATE_ENV_VAR, "").strip()
    if env_template:
        candidates.append(Path(env_template))
    candidates.append(DEFAULT_TEMPLATE)

    for candidate in candidates:
        if candidate.is_file():
            return candidate

    searched = "\n- ".join(str(c) for c in candidates)
    raise WriteFailedError(
        f"Missing HTML template.\nSearched:\n- {searched}\n"
        "Provide --html-template <path> or reinstall snapshot-report."
    )


@dataclass(frozen=True)
class _CopyJob:
    suite_index: int
    test_index: int
    attachment_index: int
    test_id: str
    attachment: Attachment


def _destination_name(job: _CopyJob, max_filename_bytes: int) -> tuple[str, Optional[str]]:
    """``<testID>-<sanitized source name>``, shortened when over the byte limit."""
    source = Path(job.attachment.path)
    filename = sanitize_filename(f"{job.test_id}-{source.name}")
    return shorten_filename(filename, max_filename_bytes, f"{job.test_id}|{source}")


def _copy_file(source: Path, destination: Path) -> Path:
    if destination.exists():
        destination.unlink()
    shutil.copy2(source, destination)
    return destination


def _file_metadata(path: Path) -> tuple[bool, bool, int]:
    try:
        size = path.stat().st_size
    except OSError:
        return False, True, 0
    return True, size == 0, size


class HTMLRenderer:
    """Copies attachments next to the report and renders ``index.html``."""

    def __init__(self, template_path: Optional[Path] = None, max_workers: Optional[int] = None,
                 max_filename_bytes: int = MAX_FILENAME_BYTES):
        self.template_path = template_path
        self.max_workers = max_workers
        self.max_filename_bytes = max_filename_bytes

    def render(self, report: Report, output_directory: Path) -> Path:
        output_directory = Path(output_directory)
        attachment_dir = output_directory / ATTACHMENTS_DIRNAME
        attachment_dir.mkdir(parents=True, exist_ok=True)

        copied = self.copy_attachments(report, attachment_dir)
        html = self.render_template(self.build_context(copied, output_directory))

        index = output_directory / INDEX_FILENAME
        index.write_text(html, encoding="utf-8")
        return index

    def copy_attachments(self, report: Report, attachment_dir: Path) -> Report:
        """
        Copy every attachment into ``attachment_dir`` in parallel.

        Returns a new report whose attachment paths are relative to the HTML
        root. Attachments whose source is missing keep their path. Each
        destination file is copied once, even when several attachments map to
        it. Any copy error is raised once all copies have finished.
        """
        jobs = [
            _CopyJob(suite_index, test_index, attachment_index, test.id, attachment)
            for suite_index, suite in enumerate(report.suites)
            for test_index, test in enumerate(suite.tests)
            for attachment_index, attachment in enumerate(test.attachments)
        ]

        # destination filename -> source; the first attachment claiming a name wins
        sources: dict[str, Path] = {}
        warnings = set()
        by_key = {}
        for job in jobs:
            key = (job.suite_index, job.test_index, job.attachment_index)
            source = Path(job.attachment.path)
            if not source.exists():
                by_key[key] = job.attachment
                continue
            filename, warning = _destination_name(job, self.max_filename_bytes)
            if warning:
                warnings.add(warning)
            sources.setdefault(filename, source)
            by_key[key] = Attachment(
                name=job.attachment.name,
                type=job.attachment.type,
                path=f"{ATTACHMENTS_DIRNAME}/{filename}",
            )

        parallel_map(
            lambda item: _copy_file(item[1], attachment_dir / item[0]),
            list(sources.items()),
            max_workers=self.max_workers,
        )

        for warning in sorted(warnings):
            logger.warning(warning)

        suites = [
            Suite(name=suite.name, tests=[
                TestCase(
                    id=test.id,
                    name=test.name,
                    class_name=test.class_name,
                    status=test.status,
                    duration=test.duration,
                    failure=test.failure,
                    attachments=[
                        by_key[(suite_index, test_index, attachment_index)]
                        for attachment_index in range(len(test.attachments))
                    ],
                    reference_url=test.reference_url,
                )
                for test_index, test in enumerate(suite.tests)
            ])
            for suite_index, suite in enumerate(report.suites)
        ]
        return Report(name=report.name, generated_at=report.generated_at, suites=suites, metadata=report.metadata)

    def render_template(self, context: dict) -> str:
        template_path = resolve_template_path(self.template_path)
        env = Environment(
            loader=FileSystemLoader(str(template_path.parent)),
            autoescape=select_autoescape(default=True, default_for_string=True),
            trim_blocks=True,
            lstrip_blocks=True,
        )
        try:
            return env.get_template(template_path.name).render(**context)
        except TemplateError as e:
            raise WriteFailedError(f"Could not render {template_path}: {e}") from e

    def build_context(self, report: Report, output_directory: Path) -> dict:
        summary = report.summary
        return {
            "report": {
                "name": report.name,
                "generatedAt": to_iso8601(report.generated_at, timespec="seconds"),
                "metadata": dict(sorted(report.metadata.items())),
                "summary": {
                    "total": summary.total,
                    "passed": summary.passed,
                    "failed": summary.failed,
                    "skipped": summary.skipped,
                    "duration": f"{summary.duration:.3f}",
                },
            },
            "suites": [
                {"name": suite.name, "tests": [self._test_context(t, output_directory) for t in suite.tests]}
                for suite in report.suites
            ],
        }

    def _test_context(self, test: TestCase, output_directory: Path) -> dict:
        failure = test.failure
        return {
            "id": test.id,
            "name": test.name,
            "className": test.class_name,
            "status": test.status.value,
            "duration": f"{test.duration:.3f}",
            "failure": {
                "message": failure.message if failure else "",
                "file": (failure.file or "") if failure else "",
                "line": str(failure.line) if failure and failure.line is not None else "",
                "diff": (failure.diff or "") if failure else "",
            },
            "referenceURL": test.reference_url or "",
            "attachments": [
                self._attachment_context(a, output_directory)
                for a in groups.sort_for_variant_display(test.attachments)
            ],
            "failedGroups": self._failed_groups(test, output_directory),
            "passedGroups": self._passed_groups(test, output_directory),
        }

    def _attachment_context(self, attachment: Attachment, output_directory: Path) -> dict:
        full_path = output_directory / attachment.path
        exists, is_empty, size = _file_metadata(full_path)
        return {
            "name": attachment.name,
            "type": attachment.type.value,
            "path": attachment.path,
            "content": self._text_content(attachment, full_path),
            "variantOrder": groups.variant_order(attachment.path),
            "exists": exists,
            "isEmpty": is_empty,
            "sizeBytes": size,
        }

    def _slot_context(self, attachment: Optional[Attachment], label: str, output_directory: Path) -> dict:
        if attachment is None:
            return {"exists": False, "isEmpty": True, "name": label, "type": "", "path": "",
                    "content": "", "sizeBytes": 0}

        full_path = output_directory / attachment.path
        exists, is_empty, size = _file_metadata(full_path)
        return {
            "exists": exists,
            "isEmpty": is_empty,
            "name": label,
            "type": attachment.type.value,
            "path": attachment.path,
            "content": self._text_content(attachment, full_path),
            "sizeBytes": size,
        }

    @staticmethod
    def _text_content(attachment: Attachment, full_path: Path) -> str:
        if not attachment.type.is_textual:
            return ""
        try:
            return full_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            return ""

    def _failed_groups(self, test: TestCase, output_directory: Path) -> list[dict]:
        if test.status != TestStatus.FAILED:
            return []

        slots: dict[str, dict] = {}
        ungrouped = 0
        for attachment in test.attachments:
            kind = groups.classify(attachment.name)
            if kind is None:
                continue
            key = groups.group_key(attachment)
            if key is None:
                key = f"ungrouped-{ungrouped}"
                ungrouped += 1
            slots.setdefault(key, {})[kind] = attachment

        result = []
        for key, slot in slots.items():
            snapshot = slot.get(groups.SNAPSHOT)
            failure = slot.get(groups.FAILURE)
            result.append({
                "groupName": groups.failed_group_name(key, snapshot, failure),
                "snapshot": self._slot_context(snapshot, "Snapshot", output_directory),
                "diff": self._slot_context(slot.get(groups.DIFF), "Diff", output_directory),
                "failure": self._slot_context(failure, "Failure", output_directory),
            })
        return result

    def _passed_groups(self, test: TestCase, output_directory: Path) -> list[dict]:
        if test.status != TestStatus.PASSED or not test.attachments:
            return []

        grouped: dict[str, list[Attachment]] = {}
        for attachment in groups.sort_for_variant_display(test.attachments):
            grouped.setdefault(groups.passed_group_name(attachment), []).append(attachment)

        return [
            {
                "groupName": name,
                "attachments": [self._attachment_context(a, output_directory) for a in items],
            }
            for name, items in grouped.items()
        ]


class HTMLReporter(SnapshotReporter):
    format = OutputFormat.HTML

    def write(self, report: Report, options: ReportWriteOptions) -> Path:
        renderer = HTMLRenderer(template_path=options.html_template_path, max_workers=options.max_workers)
        return renderer.render(report, options.output_directory / HTML_DIRNAME)
