"""
Client for ``xcrun xcresulttool``.

Only the two read-only operations the bundle reader needs are exposed:
fetching an object as JSON and exporting a payload object to a file.
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import Optional, Union

from .errors import XCResultOutputError, XCResultToolError

logger = logging.getLogger(__name__)

DEFAULT_XCRUN = "xcrun"


class XCResultTool:
    """Thin wrapper around the xcresulttool command line."""

    def __init__(self, xcrun_path: str = DEFAULT_XCRUN):
        """
        Initialize the client.

        Args:
            xcrun_path: Path to ``xcrun``. Defaults to looking it up on PATH.
        """
        self.xcrun_path = xcrun_path

    def get_object_json(self, bundle_path: Union[str, Path], object_id: Optional[str] = None) -> dict:
        """
        Fetch an object from the bundle as JSON.

        Args:
            bundle_path: Path to the ``.xcresult`` bundle
            object_id: Object id, or None for the top-level invocation record

        Returns:
            Parsed JSON object

        Raises:
            XCResultToolError: on a non-zero exit
            XCResultOutputError: if the output is not a JSON object
        """
        args = ["xcresulttool", "get", "object", "--legacy", "--format", "json"]
        if object_id:
            args += ["--id", object_id]
        args += ["--path", str(bundle_path)]

        output = self._run(args, capture=True)
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise XCResultOutputError(args) from e
        if not isinstance(data, dict):
            raise XCResultOutputError(args)
        return data

    def export_object(self, bundle_path: Union[str, Path], object_id: str,
                      destination: Union[str, Path]) -> Path:
        """
        Export a payload object to ``destination``.

        Raises:
            XCResultToolError: on a non-zero exit
        """
        destination = Path(destination)
        args = [
            "xcresulttool", "export", "object", "--legacy",
            "--type", "file",
            "--id", object_id,
            "--output-path", str(destination),
            "--path", str(bundle_path),
        ]
        self._run(args, capture=False)
        return destination

    def _run(self, args: list[str], capture: bool) -> str:
        logger.debug(f"Running xcrun {' '.join(args)}")
        try:
            result = subprocess.run(
                [self.xcrun_path] + args,
                stdout=subprocess.PIPE if capture else subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except FileNotFoundError as e:
            raise XCResultToolError(args, 127, f"{self.xcrun_path} not found") from e

        if result.returncode != 0:
            raise XCResultToolError(args, result.returncode)
        if not capture:
            return ""
        return result.stdout.decode("utf-8", errors="replace")
