import itertools
from datetime import datetime, timezone

import pytest

from snapshot_report.aggregator import merge_reports
from snapshot_report.models import DEFAULT_REPORT_NAME, Report, Suite, TestStatus


def test_merge_two_partial_reports(make_case):
    test_pass = make_case("testPass", TestStatus.PASSED)
    test_fail = make_case("testFail", TestStatus.FAILED)
    test_skip = make_case("testSkip", TestStatus.SKIPPED)
    a = Report(name="A", suites=[Suite(name="Suite1", tests=[test_pass])])
    b = Report(name="B", suites=[Suite(name="Suite1", tests=[test_fail]), Suite(name="Suite2", tests=[test_skip])])

    merged = merge_reports([a, b], name="Merged")

    assert merged.name == "Merged"
    assert [s.name for s in merged.suites] == ["Suite1", "Suite2"]
    assert merged.suites[0].tests == [test_pass, test_fail]
    assert len(merged.suites[1].tests) == 1
    summary = merged.summary
    assert (summary.total, summary.passed, summary.failed, summary.skipped) == (3, 1, 1, 1)


def test_later_metadata_overrides_earlier():
    merged = merge_reports([
        Report(name="A", metadata={"a": "1", "b": "2"}),
        Report(name="B", metadata={"a": "9", "c": "3"}),
    ])
    assert merged.metadata == {"a": "9", "b": "2", "c": "3"}


def test_name_defaults_to_first_report():
    assert merge_reports([Report(name="First"), Report(name="Second")]).name == "First"


def test_empty_merge():
    merged = merge_reports([])
    assert merged.name == DEFAULT_REPORT_NAME
    assert merged.suites == []
    assert merge_reports([], name="Nothing").name == "Nothing"


def test_suites_are_sorted_case_insensitively(make_case):
    report = Report(name="R", suites=[
        Suite(name=name, tests=[make_case("t", TestStatus.PASSED)])
        for name in ["beta", "Gamma", "alpha"]
    ])
    assert [s.name for s in merge_reports([report]).suites] == ["alpha", "beta", "Gamma"]


def test_inputs_are_not_modified_and_timestamp_is_fresh(make_case):
    old = datetime(2020, 1, 1, tzinfo=timezone.utc)
    a = Report(name="A", generated_at=old, suites=[Suite(name="S", tests=[make_case("a", TestStatus.PASSED)])])
    b = Report(name="B", generated_at=old, suites=[Suite(name="S", tests=[make_case("b", TestStatus.FAILED)])])

    merged = merge_reports([a, b])

    assert len(a.suites[0].tests) == 1
    assert len(b.suites[0].tests) == 1
    assert merged.generated_at > old


@pytest.mark.parametrize("sizes", [(6,), (1, 5), (2, 2, 2), (3, 0, 3)])
def test_counts_do_not_depend_on_partitioning(make_case, sizes):
    statuses = [TestStatus.PASSED, TestStatus.FAILED, TestStatus.SKIPPED,
                TestStatus.PASSED, TestStatus.FAILED, TestStatus.PASSED]
    cases = [make_case(f"t{i}", s, duration=0.25 * (i + 1)) for i, s in enumerate(statuses)]

    reports = []
    offsets = [0] + list(itertools.accumulate(sizes))
    for index, (start, end) in enumerate(zip(offsets, offsets[1:])):
        reports.append(Report(name=f"R{index}", suites=[Suite(name=f"S{i % 2}", tests=[c])
                                                        for i, c in enumerate(cases[start:end])]))

    for ordering in (reports, list(reversed(reports))):
        summary = merge_reports(ordering).summary
        assert (summary.total, summary.passed, summary.failed, summary.skipped) == (6, 3, 2, 1)
        assert summary.duration == pytest.approx(sum(c.duration for c in cases))
