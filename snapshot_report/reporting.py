"""Reporter contract shared by the JSON, JUnit and HTML backends."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from .errors import InvalidInputError
from .models import Report


class OutputFormat(Enum):
    """Output formats supported by the reporting pipeline."""
    JSON = "json"
    JUNIT = "junit"
    HTML = "html"

    @classmethod
    def parse(cls, value: str) -> "OutputFormat":
        normalized = value.strip().lower()
        if normalized == "xml":
            return cls.JUNIT
        try:
            return cls(normalized)
        except ValueError:
            raise InvalidInputError(f"Unknown format: {value}") from None

    @classmethod
    def parse_list(cls, value) -> list["OutputFormat"]:
        """Parse ``"json,junit"`` or ``["json", "junit"]``, dropping duplicates."""
        items = value.split(",") if isinstance(value, str) else list(value)
        formats = []
        for item in items:
            if not str(item).strip():
                continue
            fmt = cls.parse(str(item))
            if fmt not in formats:
                formats.append(fmt)
        if not formats:
            raise InvalidInputError("No output format given")
        return formats


@dataclass
class ReportWriteOptions:
    """Options used by reporters when writing artifacts."""
    output_directory: Path
    html_template_path: Optional[Path] = None
    max_workers: Optional[int] = None

    def __post_init__(self):
        self.output_directory = Path(self.output_directory)
        if self.html_template_path is not None:
            self.html_template_path = Path(self.html_template_path)


class SnapshotReporter:
    """Base class for output backends."""

    format: OutputFormat

    def write(self, report: Report, options: ReportWriteOptions) -> Path:
        """Write the report and return the path of the main artifact."""
        raise NotImplementedError
