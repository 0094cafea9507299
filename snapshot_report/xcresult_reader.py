"""Reads an ``.xcresult`` bundle and converts it into a snapshot report."""

import json
import logging
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlsplit

from .errors import XCResultToolError
from .models import Attachment, AttachmentType, Failure, Report, Suite, TestCase, TestStatus
from .parallel import parallel_map
from .typed_json import array_values, float_value, int_value, reference_id, string_value
from .xcresult_tool import XCResultTool

logger = logging.getLogger(__name__)

STATUS_MAP = {
    "success": TestStatus.PASSED,
    "failure": TestStatus.FAILED,
    "skipped": TestStatus.SKIPPED,
}

STANDARDIZED_NAME_PREFIX = "SnapshotReport"
PNG_TYPE_ID = "public.png"
JSON_TYPE_ID = "public.json"

# Directory inference for passed tests that carried no attachments
WORKSPACE_MARKER = "Package.swift"
MAX_WORKSPACE_SEARCH_DEPTH = 8
SNAPSHOT_SEARCH_ROOTS = ("examples/lib/Tests", "Tests")
SNAPSHOT_DIR_NAME = "__Snapshots__"


@dataclass(frozen=True)
class StandardizedName:
    """Decoded ``SnapshotReport|<assertID>|<kind>|<label>`` attachment name."""
    assert_id: str
    kind: str
    label: str


@dataclass(frozen=True)
class _PreparedAttachment:
    index: int
    uniform_type_id: str
    payload_id: str
    base_filename: str
    raw_name: str


@dataclass(frozen=True)
class _ExportedPayload:
    attachment: Optional[Attachment] = None
    manifest: Optional[dict] = None


def map_status(value: Optional[str]) -> TestStatus:
    return STATUS_MAP.get((value or "").lower(), TestStatus.FAILED)


def parse_standardized_name(raw: str) -> Optional[StandardizedName]:
    parts = raw.split("|")
    if len(parts) != 4 or parts[0] != STANDARDIZED_NAME_PREFIX:
        return None
    return StandardizedName(assert_id=parts[1], kind=parts[2], label=parts[3])


def display_name_for(raw_name: str) -> str:
    """Clean display name for an exported PNG attachment."""
    standardized = parse_standardized_name(raw_name)
    if standardized is not None:
        base = {"snapshot": "Snapshot", "failure": "Failure", "diff": "Diff"}.get(standardized.kind)
        if base is None:
            return raw_name
        return f"{base}-{standardized.label}" if standardized.label else base

    return {
        "reference": "Snapshot",
        "failure": "Actual Snapshot",
        "difference": "Diff",
    }.get(raw_name.lower(), raw_name)


def apply_snapshot_name(attachments: list[Attachment], snapshot_name: str) -> list[Attachment]:
    """Qualify bare Snapshot/Diff/Failure names with the manifest's snapshot name."""
    renamed = []
    for attachment in attachments:
        if attachment.name == "Snapshot":
            name = f"Snapshot-{snapshot_name}"
        elif attachment.name == "Diff":
            name = f"Diff-{snapshot_name}"
        elif attachment.name in ("Failure", "Actual Snapshot"):
            name = f"Failure-{snapshot_name}"
        else:
            renamed.append(attachment)
            continue
        renamed.append(Attachment(name=name, type=attachment.type, path=attachment.path))
    return renamed


def parse_location(summary: dict) -> tuple[Optional[str], Optional[int]]:
    """File and line from ``documentLocationInCreatingWorkspace``.

    The url looks like ``file:///path/Tests.swift#EndingLineNumber=41&StartingLineNumber=41``.
    """
    location = summary.get("documentLocationInCreatingWorkspace")
    raw_url = string_value(location, "url") if isinstance(location, dict) else None
    if not raw_url:
        return None, None

    parts = urlsplit(raw_url)
    if not parts.fragment:
        return None, None

    line = None
    for item in parts.fragment.split("&"):
        if item.startswith("StartingLineNumber="):
            try:
                line = int(item.split("=")[-1])
            except ValueError:
                line = None
            break
    return (parts.path or None), line


def find_workspace_root(bundle_path: Path) -> Optional[Path]:
    """Climb from the bundle's directory until a ``Package.swift`` is found."""
    current = bundle_path.absolute().parent
    for _ in range(MAX_WORKSPACE_SEARCH_DEPTH):
        if (current / WORKSPACE_MARKER).exists():
            return current
        if current.parent == current:
            break
        current = current.parent
    return None


def infer_reference_attachments(test_name: str, class_name: str, bundle_path: Path) -> list[Attachment]:
    """
    Find recorded reference images for a test that reported no attachments.

    Looks for ``__Snapshots__/<className>/<testName>.<variant>.png`` under the
    workspace's test directories and labels each match by its variant.
    """
    root = find_workspace_root(bundle_path)
    if root is None:
        return []

    prefix = f"{test_name}."
    matches = []
    for relative in SNAPSHOT_SEARCH_ROOTS:
        search_root = root / relative
        if not search_root.is_dir():
            continue
        for path in search_root.rglob(f"{prefix}*"):
            if any(part.startswith(".") for part in path.relative_to(search_root).parts):
                continue
            if path.suffix.lower() != ".png" or not path.is_file():
                continue
            if path.parent.name != class_name or path.parent.parent.name != SNAPSHOT_DIR_NAME:
                continue
            matches.append(path)

    matches.sort(key=lambda p: p.name)
    return [
        Attachment(name=path.stem[len(prefix):], type=AttachmentType.PNG, path=str(path))
        for path in matches
    ]


class XCResultReader:
    """Converts ``.xcresult`` bundles into reports using ``xcresulttool``."""

    def __init__(self, tool: Optional[XCResultTool] = None, max_workers: Optional[int] = None,
                 temp_dir: Optional[Path] = None):
        self.tool = tool or XCResultTool()
        self.max_workers = max_workers
        self.temp_dir = Path(temp_dir) if temp_dir else Path(tempfile.gettempdir())

    def read(self, bundle_path: Union[str, Path]) -> Report:
        """
        Parse a bundle into a report named after the bundle.

        Raises:
            XCResultToolError: if the top-level invocation record or a tests
                summary cannot be fetched
        """
        bundle_path = Path(bundle_path)
        invocation = self.tool.get_object_json(bundle_path)
        suites = self._parse_suites(invocation, bundle_path)
        logger.info(f"Read {bundle_path.name}: {sum(len(s.tests) for s in suites)} tests in {len(suites)} suites")
        return Report(name=bundle_path.stem, suites=suites)

    def _parse_suites(self, invocation: dict, bundle_path: Path) -> list[Suite]:
        actions = array_values(invocation, "actions")
        if not actions:
            return []

        suites = []
        for action in actions:
            action_result = action.get("actionResult")
            tests_ref_id = reference_id(action_result, "testsRef") if isinstance(action_result, dict) else None
            if not tests_ref_id:
                continue
            summaries = self.tool.get_object_json(bundle_path, tests_ref_id)
            suites.extend(self._extract_suites(summaries, bundle_path))

        if not suites:
            suites = self._parse_issue_fallback(actions)
        return suites

    def _parse_issue_fallback(self, actions: list[dict]) -> list[Suite]:
        """Build failed test cases straight from the action's issue summaries."""
        grouped: dict[str, list[TestCase]] = {}

        for action in actions:
            action_result = action.get("actionResult")
            issues = action_result.get("issues") if isinstance(action_result, dict) else None
            if not isinstance(issues, dict):
                continue

            for summary in array_values(issues, "testFailureSummaries"):
                full_name = (string_value(summary, "testCaseName") or "UnknownTest.test").replace("()", "")
                class_name, _, test_name = full_name.partition(".")
                file, line = parse_location(summary)
                grouped.setdefault(class_name or "UnknownTest", []).append(TestCase(
                    name=test_name or full_name,
                    class_name=class_name or "UnknownTest",
                    status=TestStatus.FAILED,
                    duration=0.0,
                    failure=Failure(
                        message=string_value(summary, "message") or "Test failed",
                        file=file,
                        line=line,
                    ),
                ))

        if grouped:
            logger.info(f"Test tree was empty, recovered {sum(map(len, grouped.values()))} failures from issues")
        return [Suite(name=name, tests=tests) for name, tests in sorted(grouped.items())]

    def _extract_suites(self, summaries_json: dict, bundle_path: Path) -> list[Suite]:
        result = []
        for summary in array_values(summaries_json, "summaries"):
            for testable in array_values(summary, "testableSummaries"):
                tests = array_values(testable, "tests")
                if not tests:
                    continue
                cases = self._extract_test_cases(tests, bundle_path)
                if cases:
                    result.append(Suite(name=string_value(testable, "name") or "Unknown Suite", tests=cases))
        return result

    def _extract_test_cases(self, nodes: list[dict], bundle_path: Path) -> list[TestCase]:
        cases = []
        for node in nodes:
            subtests = array_values(node, "subtests")
            if subtests:
                cases.extend(self._extract_test_cases(subtests, bundle_path))
                continue
            cases.append(self._build_test_case(node, bundle_path))
        return cases

    def _build_test_case(self, node: dict, bundle_path: Path) -> TestCase:
        name = (string_value(node, "name") or "Unknown Test").replace("()", "")
        identifier = string_value(node, "identifier") or name
        class_name = identifier.split("/")[0] or identifier
        status = map_status(string_value(node, "testStatus") or "Failure")
        duration = float_value(node, "duration") or 0.0

        details = self._load_details(node, bundle_path)

        attachments: list[Attachment] = []
        manifests: list[dict] = []
        activity_summaries = array_values(details, "activitySummaries")
        if activity_summaries:
            for payload in self._export_attachments(activity_summaries, bundle_path):
                if payload.attachment is not None:
                    attachments.append(payload.attachment)
                if payload.manifest is not None:
                    manifests.append(payload.manifest)

        snapshot_name = next((m.get("snapshotName") for m in manifests if m.get("snapshotName")), None)
        if snapshot_name:
            attachments = apply_snapshot_name(attachments, str(snapshot_name))

        if status == TestStatus.PASSED and not attachments:
            attachments = infer_reference_attachments(name, class_name, bundle_path)

        failure = None
        if status == TestStatus.FAILED:
            failure_summaries = array_values(details, "failureSummaries")
            if failure_summaries:
                first = failure_summaries[0]
                failure = Failure(
                    message=string_value(first, "message") or "Test failed",
                    file=string_value(first, "fileName"),
                    line=int_value(first, "lineNumber"),
                )

        return TestCase(
            name=name,
            class_name=class_name,
            status=status,
            duration=duration,
            failure=failure,
            attachments=attachments,
        )

    def _load_details(self, node: dict, bundle_path: Path) -> dict:
        """Dereference ``summaryRef`` when the node only carries metadata."""
        summary_id = reference_id(node, "summaryRef")
        if not summary_id:
            return node
        try:
            return self.tool.get_object_json(bundle_path, summary_id)
        except XCResultToolError as e:
            logger.warning(f"Could not load details for {string_value(node, 'identifier')}: {e}")
            return node

    def _export_attachments(self, activity_summaries: list[dict], bundle_path: Path) -> list[_ExportedPayload]:
        raw_attachments = []
        for activity in activity_summaries:
            raw_attachments.extend(array_values(activity, "attachments"))

        prepared = []
        for index, raw in enumerate(raw_attachments):
            type_id = string_value(raw, "uniformTypeIdentifier")
            payload_id = reference_id(raw, "payloadRef")
            if not type_id or not payload_id:
                continue
            prepared.append(_PreparedAttachment(
                index=index,
                uniform_type_id=type_id,
                payload_id=payload_id,
                base_filename=string_value(raw, "filename") or f"{payload_id}.png",
                raw_name=string_value(raw, "name") or "Attachment",
            ))
        if not prepared:
            return []

        exported = parallel_map(
            lambda item: self._export_one(item, bundle_path),
            prepared,
            max_workers=self.max_workers,
        )
        return [payload for payload in exported if payload is not None]

    def _export_one(self, item: _PreparedAttachment, bundle_path: Path) -> Optional[_ExportedPayload]:
        destination = self.temp_dir / f"xcresult-{str(uuid.uuid4()).upper()}-{Path(item.base_filename).name}"
        try:
            self.tool.export_object(bundle_path, item.payload_id, destination)
        except XCResultToolError as e:
            logger.debug(f"Skipping attachment {item.raw_name!r}: {e}")
            return None

        standardized = parse_standardized_name(item.raw_name)
        if item.uniform_type_id == JSON_TYPE_ID and standardized is not None and standardized.kind == "manifest":
            try:
                manifest = json.loads(destination.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.debug(f"Unreadable snapshot manifest {destination}: {e}")
                manifest = None
            if isinstance(manifest, dict):
                return _ExportedPayload(manifest=manifest)

        if item.uniform_type_id != PNG_TYPE_ID:
            return None
        return _ExportedPayload(attachment=Attachment(
            name=display_name_for(item.raw_name),
            type=AttachmentType.PNG,
            path=str(destination),
        ))
