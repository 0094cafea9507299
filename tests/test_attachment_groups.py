import pytest

from snapshot_report import attachment_groups as groups
from snapshot_report.models import Attachment, AttachmentType


def png(name, path=None):
    return Attachment(name=name, type=AttachmentType.PNG, path=path or f"{name}.png")


@pytest.mark.parametrize("name,expected", [
    ("Snapshot", groups.SNAPSHOT),
    ("reference", groups.SNAPSHOT),
    ("Snapshot-dark", None),
    ("Diff", groups.DIFF),
    ("odiff", groups.DIFF),
    ("Diff-login", None),
    ("difference", groups.DIFF),
    ("Actual Snapshot", groups.FAILURE),
    ("Failure-login", groups.FAILURE),
    ("current", groups.FAILURE),
    ("Hierarchy", None),
])
def test_classify(name, expected):
    assert groups.classify(name) == expected


@pytest.mark.parametrize("attachment,expected", [
    (png("Snapshot-login"), "login"),
    (png("Actual Snapshot-login"), "login"),
    (png("Diff-login-dark"), "login-dark"),
    (png("Snapshot", "/tmp/reference_0_AB12-CD.png"), "AB12-CD"),
    (png("Diff", "/tmp/difference-FF00.PNG"), "FF00"),
    (png("Snapshot", "/tmp/testLogin.light.png"), None),
])
def test_group_key(attachment, expected):
    assert groups.group_key(attachment) == expected


def test_variant_ordering():
    attachments = [png(path, path) for path in [
        "a.dark.png", "a.high-contrast-dark.png", "a.light.png", "a.high-contrast-light.png",
    ]]
    ordered = [a.path for a in groups.sort_for_variant_display(attachments)]
    assert ordered == ["a.high-contrast-light.png", "a.light.png", "a.dark.png", "a.high-contrast-dark.png"]


def test_unmatched_variant_sorts_last_and_ties_break_by_name():
    attachments = [png("zeta", "x.png"), png("B", "b.dark.png"), png("alpha", "y.png"), png("a", "a.dark.png")]
    ordered = [a.name for a in groups.sort_for_variant_display(attachments)]
    assert ordered == ["a", "B", "alpha", "zeta"]
    assert groups.variant_order("x.png") == groups.UNKNOWN_VARIANT_ORDER


@pytest.mark.parametrize("name,expected", [
    ("Snapshot-login-dark", "login"),
    ("Snapshot-login-high-contrast-dark", "login"),
    ("login-light", "login"),
    ("Hierarchy", "Hierarchy"),
])
def test_passed_group_name(name, expected):
    assert groups.passed_group_name(png(name)) == expected


def test_failed_group_name():
    snapshot = png("Snapshot", "/x/testLogin.login-button-dark.png")
    assert groups.failed_group_name("KEY", snapshot, None) == "login-button"
    assert groups.failed_group_name("ungrouped-0", None, png("Failure", "/x/failure.png")) == "assert-1"
    assert groups.failed_group_name("ungrouped-3", None, None) == "assert-4"
    assert groups.failed_group_name("AB12", None, None) == "AB12"
