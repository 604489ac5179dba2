"""Console rendering of a run outcome."""

from __future__ import annotations

from collections.abc import Iterator

from pilot_e2e_harness.run_execution.run_contracts import RunOutcome, UnitResult, UnitStatus

from .report_models import AttemptSummary

_INDENT = "  "


def summarize_attempts(outcome: RunOutcome) -> AttemptSummary:
    """Count the leaf units of the outcome tree by status."""
    counts = {status: 0 for status in UnitStatus}
    for unit in _leaves(outcome.result):
        counts[unit.status] += 1
    return AttemptSummary(
        passed=counts[UnitStatus.PASSED],
        failed=counts[UnitStatus.FAILED],
        skipped=counts[UnitStatus.SKIPPED],
    )


def render_run_report(outcome: RunOutcome) -> str:
    """Render the outcome tree as indented lines followed by a summary line."""
    lines = list(_render_unit(outcome.result, depth=0))
    summary = summarize_attempts(outcome)
    lines.append(
        f"{summary.passed} passed, {summary.failed} failed, {summary.skipped} skipped"
    )
    return "\n".join(lines)


def _render_unit(unit: UnitResult, *, depth: int) -> Iterator[str]:
    line = f"{_INDENT * depth}{unit.name}: {unit.status.value.upper()}"
    if unit.message:
        line += f" - {unit.message}"
    yield line
    for child in unit.children:
        yield from _render_unit(child, depth=depth + 1)


def _leaves(unit: UnitResult) -> Iterator[UnitResult]:
    if not unit.children:
        yield unit
        return
    for child in unit.children:
        yield from _leaves(child)
