"""
Inspects an Xcode project for snapshot test targets and prints setup hints.
"""

import json
import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .errors import InvalidInputError

logger = logging.getLogger(__name__)

SNAPSHOT_MARKERS = (
    "swift-snapshot-testing",
    "SnapshotReportTesting",
    "SnapshotReportSnapshotTesting",
    "SnapshotTesting",
)

_BEGIN_TARGETS = "/* Begin PBXNativeTarget section */"
_END_TARGETS = "/* End PBXNativeTarget section */"


def _extract_comment(line: str) -> Optional[str]:
    start = line.find("/* ")
    if start < 0:
        return None
    end = line.find(" */", start + 3)
    if end < 0:
        return None
    return line[start + 3:end]


def detect_snapshot_targets(pbxproj: str) -> list[str]:
    """Names of native targets whose section mentions a snapshot-testing package, sorted."""
    targets = []
    in_section = False
    current: Optional[str] = None
    has_snapshot = False

    for line in pbxproj.split("\n"):
        if _BEGIN_TARGETS in line:
            in_section = True
            continue
        if _END_TARGETS in line:
            if has_snapshot and current:
                targets.append(current)
            in_section = False
            current = None
            has_snapshot = False
            continue
        if not in_section:
            continue

        # Target block start: <ID> /* <TargetName> */ = {
        if "= {" in line:
            name = _extract_comment(line)
            if name:
                if has_snapshot and current:
                    targets.append(current)
                current = name
                has_snapshot = False

        if any(marker in line for marker in SNAPSHOT_MARKERS):
            has_snapshot = True

    return sorted(targets)


def list_schemes(project_path: Path, xcodebuild: str = "xcodebuild") -> list[str]:
    """Scheme names from ``xcodebuild -list -json``; empty when unavailable."""
    try:
        result = subprocess.run(
            [xcodebuild, "-list", "-json", "-project", str(project_path)],
            capture_output=True,
            text=True,
            timeout=120,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"Could not list schemes for {project_path}: {e}")
        return []

    if result.returncode != 0:
        logger.debug(f"xcodebuild -list exited with {result.returncode}")
        return []
    try:
        data = json.loads(result.stdout)
    except json.JSONDecodeError:
        return []

    schemes = data.get("project", {}).get("schemes") if isinstance(data, dict) else None
    return [str(s) for s in schemes] if isinstance(schemes, list) else []


@dataclass
class ProjectInspection:
    project_path: Path
    snapshot_targets: list[str] = field(default_factory=list)
    schemes: list[str] = field(default_factory=list)

    def formatted_report(self, gitlab: bool = False) -> str:
        lines = [f"=== Snapshot Report Inspection: {self.project_path.name} ===", ""]

        if not self.snapshot_targets:
            lines.append("No test targets referencing swift-snapshot-testing or SnapshotReportTesting were detected.")
            lines.append("If your project uses snapshot testing, ensure the package dependency name matches one of:")
            lines.extend(f"  - {marker}" for marker in SNAPSHOT_MARKERS)
        else:
            lines.append("Snapshot testing targets detected:")
            lines.extend(f"  - {target}" for target in self.snapshot_targets)
            lines.append("")
            lines.append("Recommended environment variables to set in each scheme's test action:")
            lines.append("  SNAPSHOT_REPORT_OUTPUT_DIR = $(SRCROOT)/.artifacts/snapshot-runs")
            lines.append("  SRCROOT                    = $(SRCROOT)")
            lines.append("  SCHEME_NAME                = <your scheme name>")
            lines.append("  GIT_BRANCH                 = $(GIT_BRANCH)  # or $CI_COMMIT_REF_NAME on GitLab")
            lines.append("  TEST_PLAN_NAME             = <your test plan name>")

        if self.schemes:
            lines.append("")
            lines.append(f"Schemes found: {', '.join(self.schemes)}")

        if gitlab:
            lines.append("")
            lines.append(self.gitlab_ci_snippet())

        return "\n".join(lines)

    def gitlab_ci_snippet(self) -> str:
        scheme = self.schemes[0] if self.schemes else "<your-scheme>"
        targets = self.snapshot_targets or ["<your-snapshot-test-target>"]
        target_comments = "\n".join(f"    # {target}" for target in targets)
        project = self.project_path.name

        return (
            "# === Suggested .gitlab-ci.yml snippet for scheduled snapshot runs ===\n"
            "\n"
            "snapshot-tests:\n"
            "  stage: test\n"
            "  script:\n"
            "    - xcodebuild test\n"
            f"        -project {project}\n"
            f"        -scheme {scheme}\n"
            "        -destination 'platform=iOS Simulator,name=iPhone 15,OS=latest'\n"
            "        SNAPSHOT_REPORT_OUTPUT_DIR=$CI_PROJECT_DIR/.artifacts/snapshot-runs\n"
            "        SRCROOT=$CI_PROJECT_DIR\n"
            "        GIT_BRANCH=$CI_COMMIT_REF_NAME\n"
            f"        SCHEME_NAME={scheme}\n"
            "    # Targets with snapshot tests:\n"
            f"{target_comments}\n"
            "    - snapshot-report generate\n"
            "        --input-dir .artifacts/snapshot-runs\n"
            "        --output .artifacts/snapshot-report\n"
            "        --format json,junit,html\n"
            "  artifacts:\n"
            "    paths:\n"
            "      - .artifacts/snapshot-runs/\n"
            "      - .artifacts/snapshot-report/\n"
            "    reports:\n"
            "      junit: .artifacts/snapshot-report/report.junit.xml\n"
            "  only:\n"
            "    - schedules"
        )


def inspect_project(project_path: Path, xcodebuild: str = "xcodebuild") -> ProjectInspection:
    """
    Inspect ``<name>.xcodeproj`` for snapshot testing targets and schemes.

    Raises:
        InvalidInputError: if the project has no ``project.pbxproj``.
    """
    project_path = Path(project_path)
    pbxproj = project_path / "project.pbxproj"
    if not pbxproj.is_file():
        raise InvalidInputError(f"project.pbxproj not found at {project_path}")

    content = pbxproj.read_text(encoding="utf-8", errors="replace")
    return ProjectInspection(
        project_path=project_path,
        snapshot_targets=detect_snapshot_targets(content),
        schemes=list_schemes(project_path, xcodebuild=xcodebuild),
    )
