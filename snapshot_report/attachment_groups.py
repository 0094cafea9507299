"""
Name heuristics used by the HTML report to lay out snapshot attachments.

Failed tests show reference, diff and actual capture side by side for each
assertion. Passed tests show the appearance variants of one assertion side
by side in a fixed order.
"""

import re
from pathlib import PurePath
from typing import Optional

from .models import Attachment

SNAPSHOT = "snapshot"
DIFF = "diff"
FAILURE = "failure"

UNKNOWN_VARIANT_ORDER = 999

# Longest first so "-high-contrast-dark" is not read as "-dark"
APPEARANCE_SUFFIXES = ("-high-contrast-light", "-high-contrast-dark", "-light", "-dark")

STANDARDIZED_PREFIXES = ("Snapshot-", "Diff-", "Failure-", "Actual Snapshot-")

_FILENAME_KEY_PATTERNS = [
    re.compile(r"(?:reference|failure|difference)_\d+_([A-F0-9-]+)\.(?:png|jpg|jpeg)$", re.IGNORECASE),
    re.compile(r"(?:reference|failure|difference)-([A-F0-9-]+)\.(?:png|jpg|jpeg)$", re.IGNORECASE),
]

_NAMED_SEGMENT = re.compile(r"^[^.]+\.(.+)$")
_IMAGE_EXTENSION = re.compile(r"\.(png|jpg|jpeg)$")


def classify(name: str) -> Optional[str]:
    """Role of an attachment in a failed test: snapshot, diff, failure or None."""
    value = name.lower()
    if value == "snapshot" or "reference" in value:
        return SNAPSHOT
    if value in ("diff", "odiff") or "difference" in value:
        return DIFF
    if value == "actual snapshot" or "failure" in value or "actual" in value or "current" in value:
        return FAILURE
    return None


def group_key(attachment: Attachment) -> Optional[str]:
    """Key shared by the reference/diff/failure images of one assertion, if any."""
    raw_name = attachment.name.strip()
    for prefix in STANDARDIZED_PREFIXES:
        if raw_name.startswith(prefix):
            return raw_name[len(prefix):]

    filename = PurePath(attachment.path).name
    for pattern in _FILENAME_KEY_PATTERNS:
        match = pattern.search(filename)
        if match:
            return match.group(1)
    return None


def variant_order(path: str) -> int:
    value = path.lower()
    if "high-contrast-light" in value:
        return 0
    if "light" in value and "high-contrast" not in value:
        return 1
    if "dark" in value and "high-contrast" not in value:
        return 2
    if "high-contrast-dark" in value:
        return 3
    return UNKNOWN_VARIANT_ORDER


def sort_for_variant_display(attachments: list[Attachment]) -> list[Attachment]:
    return sorted(attachments, key=lambda a: (variant_order(a.path), a.name.casefold()))


def strip_appearance_suffix(value: str) -> str:
    lowered = value.lower()
    for suffix in APPEARANCE_SUFFIXES:
        if lowered.endswith(suffix):
            return value[:-len(suffix)]
    return value


def passed_group_name(attachment: Attachment) -> str:
    candidate = attachment.name.strip()
    if candidate.startswith("Snapshot-"):
        candidate = candidate[len("Snapshot-"):]
    return strip_appearance_suffix(candidate)


def extract_named_segment(filename: str) -> Optional[str]:
    """``testName.my-view-dark`` -> ``my-view``; None when there is no dotted segment."""
    match = _NAMED_SEGMENT.match(filename)
    if not match:
        return None
    value = _IMAGE_EXTENSION.sub("", match.group(1))
    return strip_appearance_suffix(value)


def failed_group_name(key: str, snapshot: Optional[Attachment], failure: Optional[Attachment]) -> str:
    for attachment in (snapshot, failure):
        if attachment is None:
            continue
        name = extract_named_segment(PurePath(attachment.path).stem)
        if name:
            return name

    if key.startswith("ungrouped-"):
        index = key[len("ungrouped-"):]
        if index.isdigit():
            return f"assert-{int(index) + 1}"
    return key
