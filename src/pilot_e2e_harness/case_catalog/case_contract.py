"""Contract every registered test case satisfies."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol


class TestCaseError(Exception):
    """Raised when a test case step fails."""

    __test__ = False


class TestCase(Protocol):
    """Named integration check with a setup/run/teardown lifecycle.

    Each step raises on failure. ``name`` is used for selection and for
    naming reported attempts.
    """

    name: str

    def setup(self) -> None: ...

    def run(self) -> None: ...

    def teardown(self) -> None: ...


# Builds a case bound to the environment of the branch that runs it.
CaseFactory = Callable[[Any], TestCase]
