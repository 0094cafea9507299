"""
Data models for snapshot test reports.

The JSON representation uses the camelCase keys written by the snapshot
runtime (``generatedAt``, ``className``, ``referenceURL``) so reports produced
on device and reports produced here can be merged freely.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_REPORT_NAME = "Snapshot Report"
DEFAULT_FAILURE_MESSAGE = "Test failed"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso8601(value: datetime, timespec: str = "auto") -> str:
    """Format a datetime as ISO-8601 in UTC with a ``Z`` suffix.

    Naive datetimes are treated as UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec=timespec).replace("+00:00", "Z")


def parse_iso8601(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z``."""
    text = value.strip()
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def new_test_id() -> str:
    return str(uuid.uuid4()).upper()


class TestStatus(Enum):
    """Status of a snapshot test case."""
    __test__ = False

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TestStatus":
        """Map a status string to a status, treating anything unknown as failed."""
        normalized = (value or "").strip().lower()
        for status in cls:
            if status.value == normalized:
                return status
        logger.debug(f"Unrecognized test status {value!r}, treating as failed")
        return cls.FAILED


class AttachmentType(Enum):
    """Media category of an attachment."""
    PNG = "png"
    TEXT = "text"
    DUMP = "dump"
    BINARY = "binary"

    @property
    def mime_type(self) -> str:
        return _MIME_TYPES[self]

    @property
    def is_textual(self) -> bool:
        return self in (AttachmentType.TEXT, AttachmentType.DUMP)


_MIME_TYPES = {
    AttachmentType.PNG: "image/png",
    AttachmentType.TEXT: "text/plain",
    AttachmentType.DUMP: "text/plain",
    AttachmentType.BINARY: "application/octet-stream",
}


@dataclass
class Attachment:
    """A file attached to a test case.

    The name carries meaning: "Snapshot", "Actual Snapshot", "Diff", "odiff"
    and the ``Snapshot-``/``Failure-``/``Diff-`` prefixes are matched by the
    renderers.
    """
    name: str
    type: AttachmentType
    path: str

    def to_dict(self) -> dict:
        return {"name": self.name, "type": self.type.value, "path": self.path}

    @classmethod
    def from_dict(cls, data: dict) -> "Attachment":
        return cls(
            name=data.get("name", ""),
            type=AttachmentType(data.get("type", AttachmentType.BINARY.value)),
            path=data.get("path", ""),
        )


@dataclass
class Failure:
    """Failure details for a failed test case."""
    message: str = DEFAULT_FAILURE_MESSAGE
    file: Optional[str] = None
    line: Optional[int] = None
    diff: Optional[str] = None

    def __post_init__(self):
        if not self.message:
            self.message = DEFAULT_FAILURE_MESSAGE

    def to_dict(self) -> dict:
        data = {"message": self.message}
        if self.file is not None:
            data["file"] = self.file
        if self.line is not None:
            data["line"] = self.line
        if self.diff is not None:
            data["diff"] = self.diff
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Failure":
        line = data.get("line")
        return cls(
            message=data.get("message") or DEFAULT_FAILURE_MESSAGE,
            file=data.get("file"),
            line=int(line) if line is not None else None,
            diff=data.get("diff"),
        )


@dataclass
class TestCase:
    """Represents a single snapshot assertion result."""
    __test__ = False

    name: str
    class_name: str
    status: TestStatus
    duration: float = 0.0
    failure: Optional[Failure] = None
    attachments: list[Attachment] = field(default_factory=list)
    reference_url: Optional[str] = None
    id: str = field(default_factory=new_test_id)

    def __post_init__(self):
        if self.name.endswith("()"):
            self.name = self.name[:-2]
        self.duration = max(0.0, float(self.duration or 0.0))

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "className": self.class_name,
            "status": self.status.value,
            "duration": self.duration,
            "attachments": [a.to_dict() for a in self.attachments],
        }
        if self.failure is not None:
            data["failure"] = self.failure.to_dict()
        if self.reference_url is not None:
            data["referenceURL"] = self.reference_url
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "TestCase":
        failure = data.get("failure")
        return cls(
            id=data.get("id") or new_test_id(),
            name=data["name"],
            class_name=data.get("className", ""),
            status=TestStatus.parse(data["status"]),
            duration=data.get("duration", 0.0),
            failure=Failure.from_dict(failure) if failure else None,
            attachments=[Attachment.from_dict(a) for a in data.get("attachments", [])],
            reference_url=data.get("referenceURL"),
        )


@dataclass
class Suite:
    """A named group of test cases, usually one test class."""
    name: str
    tests: list[TestCase] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"name": self.name, "tests": [t.to_dict() for t in self.tests]}

    @classmethod
    def from_dict(cls, data: dict) -> "Suite":
        return cls(name=data["name"], tests=[TestCase.from_dict(t) for t in data.get("tests", [])])


@dataclass(frozen=True)
class Summary:
    """Aggregate counts over every test case in a report."""
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    duration: float = 0.0

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "duration": self.duration,
        }


@dataclass
class Report:
    """A full snapshot run, or the merge of several runs."""
    name: str
    suites: list[Suite] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)
    generated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        if self.generated_at.tzinfo is None:
            self.generated_at = self.generated_at.replace(tzinfo=timezone.utc)

    def iter_tests(self):
        for suite in self.suites:
            yield from suite.tests

    @property
    def summary(self) -> Summary:
        tests = list(self.iter_tests())
        return Summary(
            total=len(tests),
            passed=sum(1 for t in tests if t.status == TestStatus.PASSED),
            failed=sum(1 for t in tests if t.status == TestStatus.FAILED),
            skipped=sum(1 for t in tests if t.status == TestStatus.SKIPPED),
            duration=sum(t.duration for t in tests),
        )

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "generatedAt": to_iso8601(self.generated_at),
            "suites": [s.to_dict() for s in self.suites],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Report":
        """Build a report from its JSON form; ``name``, ``generatedAt`` and ``suites`` are required."""
        return cls(
            name=data["name"],
            generated_at=parse_iso8601(data["generatedAt"]),
            suites=[Suite.from_dict(s) for s in data["suites"]],
            metadata={str(k): str(v) for k, v in (data.get("metadata") or {}).items()},
        )
