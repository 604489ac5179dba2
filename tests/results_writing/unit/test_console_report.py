"""Console report rendering tests."""

from __future__ import annotations

from pilot_e2e_harness.results_writing import AttemptSummary, render_run_report, summarize_attempts
from pilot_e2e_harness.run_execution import RunOutcome, UnitResult


def _outcome() -> RunOutcome:
    no_auth = UnitResult.aggregate(
        "NoAuth",
        (
            UnitResult.passed("http-reachability"),
            UnitResult.failed("zipkin", "a -> http://b/ did not return 200"),
        ),
    )
    auth = UnitResult.failed("Auth", "environment setup failed: timeout")
    return RunOutcome(result=UnitResult.aggregate("TestPilot", (no_auth, auth)))


def test_report_indents_units_by_depth() -> None:
    report = render_run_report(_outcome())

    assert report.splitlines() == [
        "TestPilot: FAILED",
        "  NoAuth: FAILED",
        "    http-reachability: PASSED",
        "    zipkin: FAILED - a -> http://b/ did not return 200",
        "  Auth: FAILED - environment setup failed: timeout",
        "1 passed, 2 failed, 0 skipped",
    ]


def test_summary_counts_leaf_units() -> None:
    summary = summarize_attempts(_outcome())

    assert summary == AttemptSummary(passed=1, failed=2, skipped=0)
    assert summary.total == 3


def test_skipped_run_reports_its_reason() -> None:
    skipped = UnitResult.skipped("TestPilot", "HUB not specified. Skipping tests")
    outcome = RunOutcome(result=skipped)

    report = render_run_report(outcome)

    assert report.splitlines()[0] == "TestPilot: SKIPPED - HUB not specified. Skipping tests"
    assert report.splitlines()[-1] == "0 passed, 0 failed, 1 skipped"
