import stat
from datetime import datetime, timezone
from pathlib import Path

import pytest

from snapshot_report.errors import XCResultToolError
from snapshot_report.models import Attachment, AttachmentType, Failure, Report, Suite, TestCase, TestStatus

SNAPSHOT_ENV_VARS = [
    "SNAPSHOT_REPORT_CONFIG",
    "SNAPSHOT_REPORT_OUTPUT",
    "SNAPSHOT_REPORT_OUTPUT_DIR",
    "SNAPSHOT_REPORT_FORMATS",
    "SNAPSHOT_REPORT_HTML_TEMPLATE",
    "SNAPSHOT_REPORT_NAME",
    "SNAPSHOT_REPORT_JOBS",
    "SNAPSHOT_REPORT_ODIFF",
    "SRCROOT",
    "SCHEME_NAME",
    "GIT_BRANCH",
    "TEST_PLAN_NAME",
    "TARGET_NAME",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in SNAPSHOT_ENV_VARS:
        monkeypatch.delenv(var, raising=False)


def typed_string(value):
    return {"_type": {"_name": "String"}, "_value": value}


def typed_array(*values):
    return {"_type": {"_name": "Array"}, "_values": list(values)}


def typed_ref(object_id):
    return {"_type": {"_name": "Reference"}, "id": typed_string(object_id)}


class FakeXCResultTool:
    """Serves canned typed-JSON objects and payload bytes instead of running xcrun."""

    def __init__(self, objects, payloads=None, failing_ids=()):
        self.objects = objects
        self.payloads = payloads or {}
        self.failing_ids = set(failing_ids)
        self.exported = []

    def get_object_json(self, bundle_path, object_id=None):
        if object_id in self.failing_ids:
            raise XCResultToolError(["xcresulttool", "get", "object", "--id", object_id], 1)
        return self.objects[object_id]

    def export_object(self, bundle_path, object_id, destination):
        if object_id not in self.payloads:
            raise XCResultToolError(["xcresulttool", "export", "object", "--id", object_id], 1)
        destination = Path(destination)
        destination.write_bytes(self.payloads[object_id])
        self.exported.append(object_id)
        return destination


@pytest.fixture
def typed():
    """Builders for xcresulttool typed JSON."""
    class Typed:
        string = staticmethod(typed_string)
        array = staticmethod(typed_array)
        ref = staticmethod(typed_ref)
    return Typed


@pytest.fixture
def fake_tool_class():
    return FakeXCResultTool


@pytest.fixture
def write_script(tmp_path):
    """Write an executable shell script into tmp_path and return its path."""
    def _write(name, body):
        path = tmp_path / name
        path.write_text("#!/bin/sh\n" + body + "\n")
        path.chmod(path.stat().st_mode | stat.S_IEXEC | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)
    return _write


@pytest.fixture
def png_file(tmp_path):
    def _make(name, data=b"\x89PNG\r\n\x1a\nfake"):
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path
    return _make


@pytest.fixture
def sample_report(tmp_path):
    """A small report whose attachments exist on disk."""
    images = tmp_path / "images"
    images.mkdir()
    reference = images / "testLogin.light.png"
    actual = images / "failure_1_AB12.png"
    recorded = images / "testHome.dark.png"
    for path in (reference, actual, recorded):
        path.write_bytes(b"\x89PNG\r\n\x1a\n" + path.name.encode())
    dump = images / "hierarchy.txt"
    dump.write_text("<UIView frame=(0 0; 10 10)>")

    failed = TestCase(
        id="F0000000-0000-0000-0000-000000000001",
        name="testLogin",
        class_name="LoginTests",
        status=TestStatus.FAILED,
        duration=1.25,
        failure=Failure(message="Snapshot does not match", file="/src/LoginTests.swift", line=42,
                        diff="- expected\n+ actual"),
        attachments=[
            Attachment(name="Snapshot", type=AttachmentType.PNG, path=str(reference)),
            Attachment(name="Actual Snapshot", type=AttachmentType.PNG, path=str(actual)),
            Attachment(name="Hierarchy", type=AttachmentType.DUMP, path=str(dump)),
        ],
    )
    passed = TestCase(
        id="P0000000-0000-0000-0000-000000000002",
        name="testHome",
        class_name="HomeTests",
        status=TestStatus.PASSED,
        duration=0.5,
        attachments=[Attachment(name="Snapshot-home-dark", type=AttachmentType.PNG, path=str(recorded))],
        reference_url="https://example.com/home",
    )
    skipped = TestCase(
        id="S0000000-0000-0000-0000-000000000003",
        name="testSettings",
        class_name="SettingsTests",
        status=TestStatus.SKIPPED,
    )
    return Report(
        name="Nightly <iOS>",
        generated_at=datetime(2026, 3, 1, 12, 30, 15, 250000, tzinfo=timezone.utc),
        suites=[
            Suite(name="HomeTests", tests=[passed]),
            Suite(name="LoginTests", tests=[failed]),
            Suite(name="SettingsTests", tests=[skipped]),
        ],
        metadata={"branch": "main"},
    )


def make_test(name, status, suite_class="SnapshotTests", **kwargs):
    return TestCase(name=name, class_name=suite_class, status=status, **kwargs)


@pytest.fixture
def make_case():
    return make_test


@pytest.fixture
def chdir_tmp(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path
