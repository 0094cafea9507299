import json

import pytest

import cli
from snapshot_report.models import Report, Suite, TestStatus
from snapshot_report.report_io import save_report


@pytest.fixture
def inputs(tmp_path, make_case):
    run = tmp_path / "runs"
    save_report(Report(name="Nightly", suites=[Suite(name="LoginTests", tests=[
        make_case("testLogin", TestStatus.PASSED, duration=0.5),
    ])]), run / "a.json")
    save_report(Report(name="Nightly", suites=[Suite(name="HomeTests", tests=[
        make_case("testHome", TestStatus.PASSED, duration=0.25),
    ])]), run / "b.json")
    return run


def test_parse_metadata():
    assert cli.parse_metadata(["branch=main", "url=https://x?a=b"]) == {"branch": "main", "url": "https://x?a=b"}
    assert cli.parse_metadata(None) == {}


@pytest.mark.parametrize("pair", ["novalue", "=value"])
def test_parse_metadata_rejects_bad_pairs(pair):
    with pytest.raises(cli.InvalidInputError):
        cli.parse_metadata([pair])


def test_generate(inputs, chdir_tmp, tmp_path, capsys):
    output = tmp_path / "out"
    code = cli.main(["generate", "--input-dir", str(inputs), "--format", "json,xml", "--output", str(output),
                     "--metadata", "build=42", "--name", "Merged"])

    assert code == 0
    assert capsys.readouterr().out.strip() == f"Generated report (json, junit) at {output}"
    report = json.loads((output / "report.json").read_text())
    assert report["name"] == "Merged"
    assert report["metadata"] == {"build": "42"}
    assert [s["name"] for s in report["suites"]] == ["HomeTests", "LoginTests"]
    assert (output / "report.junit.xml").exists()


def test_generate_uses_config_file(inputs, chdir_tmp, capsys):
    (chdir_tmp / ".snapshot-report.yml").write_text("formats: [json]\noutput: from-config\nmetadata:\n  team: ios\n")

    assert cli.main(["generate", "-i", str(inputs / "a.json")]) == 0

    report = json.loads((chdir_tmp / "from-config" / "report.json").read_text())
    assert report["metadata"] == {"team": "ios"}
    assert not (chdir_tmp / "from-config" / "html").exists()


def test_generate_missing_input(chdir_tmp, tmp_path, capsys):
    code = cli.main(["generate", "--input", str(tmp_path / "missing.json"), "--output", str(tmp_path / "out")])

    assert code == 1
    assert capsys.readouterr().err.startswith("Error: Invalid input: Input not found")


def test_generate_unknown_format(inputs, chdir_tmp, tmp_path, capsys):
    code = cli.main(["generate", "--input-dir", str(inputs), "--format", "pdf", "--output", str(tmp_path / "out")])
    assert code == 1
    assert "Unknown format: pdf" in capsys.readouterr().err


def test_jobs_must_be_positive(inputs):
    with pytest.raises(SystemExit):
        cli.main(["generate", "--input-dir", str(inputs), "--jobs", "0"])


def test_summary(inputs, chdir_tmp, make_case, capsys):
    assert cli.main(["summary", "--input-dir", str(inputs)]) == 0
    out = capsys.readouterr().out
    assert "Report: Nightly" in out
    assert "Total:   2" in out

    save_report(Report(name="Broken", suites=[Suite(name="LoginTests", tests=[
        make_case("testBroken", TestStatus.FAILED),
    ])]), inputs / "c.json")

    assert cli.main(["summary", "--input-dir", str(inputs), "--format", "json"]) == 1
    data = json.loads(capsys.readouterr().out)
    assert data["summary"]["failed"] == 1
    assert data["failed"] == [{"suite": "LoginTests", "name": "testBroken", "message": ""}]


def test_inspect(tmp_path, capsys):
    project = tmp_path / "Demo.xcodeproj"
    project.mkdir()
    (project / "project.pbxproj").write_text("// empty\n")

    assert cli.main(["inspect", "--project", str(project)]) == 0
    assert "=== Snapshot Report Inspection: Demo.xcodeproj ===" in capsys.readouterr().out

    assert cli.main(["inspect", "--project", str(tmp_path / "Missing.xcodeproj")]) == 1
    assert "project.pbxproj not found" in capsys.readouterr().err


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage: snapshot-report" in capsys.readouterr().out


def test_generate_rejects_non_utf8_input(chdir_tmp, tmp_path, capsys):
    runs = tmp_path / "runs"
    runs.mkdir()
    (runs / "broken.json").write_bytes(b'{"name": "\xff\xfe"}')

    code = cli.main(["generate", "--input-dir", str(runs), "--output", str(tmp_path / "out")])

    assert code == 1
    assert "not UTF-8" in capsys.readouterr().err


def test_generate_rejects_non_report_json(chdir_tmp, tmp_path, capsys):
    runs = tmp_path / "runs"
    runs.mkdir()
    (runs / "package.json").write_text('{"dependencies": {"left-pad": "1.0"}}')

    code = cli.main(["generate", "--input-dir", str(runs), "--output", str(tmp_path / "out")])

    assert code == 1
    assert "is not a snapshot report: missing field" in capsys.readouterr().err
    assert not (tmp_path / "out").exists()


def test_summary_uses_environment_settings(inputs, chdir_tmp, monkeypatch, capsys):
    monkeypatch.setenv("SNAPSHOT_REPORT_NAME", "From Env")
    (chdir_tmp / ".snapshot-report.yml").write_text("jobs: 1\n")

    assert cli.main(["summary", "--input-dir", str(inputs)]) == 0
    assert "Report: From Env" in capsys.readouterr().out

    assert cli.main(["summary", "--input-dir", str(inputs), "--name", "Flag"]) == 0
    assert "Report: Flag" in capsys.readouterr().out
