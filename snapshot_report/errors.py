"""Errors raised by snapshot report input/output operations."""

from typing import Optional, Sequence


class SnapshotReportError(Exception):
    """Base error for the snapshot report pipeline."""


class InvalidInputError(SnapshotReportError):
    """Provided input is invalid or missing required data."""

    def __str__(self):
        return f"Invalid input: {self.args[0] if self.args else ''}"


class WriteFailedError(SnapshotReportError):
    """Writing report output failed."""

    def __str__(self):
        return f"Write failed: {self.args[0] if self.args else ''}"


class XCResultToolError(SnapshotReportError):
    """The ``xcrun xcresulttool`` invocation failed."""

    def __init__(self, args: Sequence[str], exit_code: int, message: Optional[str] = None):
        super().__init__(list(args), exit_code, message)
        self.command = list(args)
        self.exit_code = exit_code
        self.message = message

    def __str__(self):
        text = f"xcrun {' '.join(self.command)} failed with exit code {self.exit_code}"
        if self.message:
            text = f"{text}: {self.message}"
        return text


class XCResultOutputError(XCResultToolError):
    """The tool exited cleanly but its output was not a JSON object."""

    def __init__(self, args: Sequence[str]):
        super().__init__(args, 0, "could not parse xcresulttool JSON output")
