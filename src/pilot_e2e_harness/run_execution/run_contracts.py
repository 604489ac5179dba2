"""Run execution entities."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

RUN_UNIT_NAME = "TestPilot"


class UnitStatus(str, Enum):
    """Outcome of one named unit of the run."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class UnitResult:
    """Outcome of a run, a branch or a single attempt."""

    name: str
    status: UnitStatus
    message: str | None = None
    children: tuple[UnitResult, ...] = ()

    @property
    def is_failed(self) -> bool:
        return self.status == UnitStatus.FAILED

    @staticmethod
    def passed(name: str, children: tuple[UnitResult, ...] = ()) -> UnitResult:
        return UnitResult(name=name, status=UnitStatus.PASSED, children=children)

    @staticmethod
    def failed(name: str, message: str, children: tuple[UnitResult, ...] = ()) -> UnitResult:
        return UnitResult(name=name, status=UnitStatus.FAILED, message=message, children=children)

    @staticmethod
    def skipped(name: str, reason: str) -> UnitResult:
        return UnitResult(name=name, status=UnitStatus.SKIPPED, message=reason)

    @staticmethod
    def aggregate(name: str, children: tuple[UnitResult, ...]) -> UnitResult:
        """Fail when any child failed, pass otherwise."""
        if any(child.is_failed for child in children):
            return UnitResult(name=name, status=UnitStatus.FAILED, children=children)
        return UnitResult.passed(name, children)


@dataclass(frozen=True)
class RunRequest:
    """Input contract for executing one run."""

    config_path: str | None = None
    overrides: Mapping[str, Any] = field(default_factory=dict)
    verbose: bool = False


@dataclass(frozen=True)
class RunOutcome:
    """Output contract for one completed (or skipped) run."""

    result: UnitResult

    @property
    def status(self) -> UnitStatus:
        return self.result.status

    @property
    def exit_code(self) -> int:
        """0 for passed or skipped runs, 1 when anything failed."""
        return 1 if self.result.is_failed else 0


def attempt_name(case_name: str, attempt: int, test_count: int) -> str:
    """Name reported for one repetition of a case; numbered only when repeated."""
    if test_count > 1:
        return f"{case_name}_attempt_{attempt}"
    return case_name
