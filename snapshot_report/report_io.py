"""Read and write report JSON files."""

import json
import logging
from pathlib import Path
from typing import Union

from .errors import InvalidInputError
from .models import Report

logger = logging.getLogger(__name__)


def dumps_report(report: Report) -> str:
    return json.dumps(report.to_dict(), indent=2, sort_keys=True, ensure_ascii=False) + "\n"


def load_report(path: Union[str, Path]) -> Report:
    """Load a report from a JSON file.

    Raises:
        InvalidInputError: if the file is not valid report JSON.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as e:
        raise InvalidInputError(f"{path} is not UTF-8 text: {e}") from e
    except json.JSONDecodeError as e:
        raise InvalidInputError(f"{path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise InvalidInputError(f"{path} does not contain a report object")
    try:
        report = Report.from_dict(data)
    except KeyError as e:
        raise InvalidInputError(f"{path} is not a snapshot report: missing field {e}") from e
    except (TypeError, ValueError, AttributeError) as e:
        raise InvalidInputError(f"{path} is not a snapshot report: {e}") from e

    logger.debug(f"Loaded {path}: {report.summary.total} tests")
    return report


def save_report(report: Report, path: Union[str, Path]) -> Path:
    """Write a report as pretty-printed JSON with sorted keys."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dumps_report(report), encoding="utf-8")
    return path
