import pytest

from snapshot_report.errors import XCResultOutputError, XCResultToolError
from snapshot_report.xcresult_tool import XCResultTool


def test_get_object_json_passes_legacy_arguments(write_script, tmp_path):
    args_file = tmp_path / "args.txt"
    xcrun = write_script("xcrun", f'printf "%s\\n" "$@" > "{args_file}"\necho \'{{"actions": {{}}}}\'')

    data = XCResultTool(xcrun).get_object_json(tmp_path / "Run.xcresult", "0~abc")

    assert data == {"actions": {}}
    assert args_file.read_text().split("\n")[:-1] == [
        "xcresulttool", "get", "object", "--legacy", "--format", "json",
        "--id", "0~abc", "--path", str(tmp_path / "Run.xcresult"),
    ]


def test_export_object_arguments(write_script, tmp_path):
    args_file = tmp_path / "args.txt"
    xcrun = write_script("xcrun", f'printf "%s\\n" "$@" > "{args_file}"')

    destination = XCResultTool(xcrun).export_object("Run.xcresult", "0~png", tmp_path / "out.png")

    assert destination == tmp_path / "out.png"
    assert args_file.read_text().split("\n")[:-1] == [
        "xcresulttool", "export", "object", "--legacy", "--type", "file",
        "--id", "0~png", "--output-path", str(tmp_path / "out.png"), "--path", "Run.xcresult",
    ]


def test_non_zero_exit_raises(write_script):
    xcrun = write_script("xcrun", "exit 3")
    with pytest.raises(XCResultToolError) as exc:
        XCResultTool(xcrun).get_object_json("Run.xcresult")
    assert exc.value.exit_code == 3
    assert str(exc.value) == (
        "xcrun xcresulttool get object --legacy --format json --path Run.xcresult failed with exit code 3"
    )


def test_unparseable_output_raises(write_script):
    xcrun = write_script("xcrun", "echo not-json")
    with pytest.raises(XCResultOutputError):
        XCResultTool(xcrun).get_object_json("Run.xcresult")


def test_missing_xcrun_reports_exit_code_127(tmp_path):
    with pytest.raises(XCResultToolError) as exc:
        XCResultTool(str(tmp_path / "missing-xcrun")).get_object_json("Run.xcresult")
    assert exc.value.exit_code == 127
