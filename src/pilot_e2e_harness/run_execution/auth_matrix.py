"""Auth matrix: which branches a run executes, and in which order."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pilot_e2e_harness.case_catalog.case_contract import CaseFactory
from pilot_e2e_harness.configuration.run_settings import AuthMode, BranchVariant, RunConfig

from .branch_runner import EnvironmentFactory, run_branch
from .run_contracts import UnitResult

logger = logging.getLogger(__name__)

_BRANCH_PLAN: dict[AuthMode, tuple[BranchVariant, ...]] = {
    AuthMode.ENABLE: (BranchVariant.AUTH,),
    AuthMode.DISABLE: (BranchVariant.NO_AUTH,),
    AuthMode.BOTH: (BranchVariant.NO_AUTH, BranchVariant.AUTH),
}


class UnknownAuthModeError(Exception):
    """Raised when the auth mode does not map to any branch plan."""


def plan_branches(auth_mode: AuthMode | str) -> tuple[BranchVariant, ...]:
    """Return the branches to run, no-auth first when both are required."""
    try:
        return _BRANCH_PLAN[AuthMode(auth_mode)]
    except ValueError as exc:
        raise UnknownAuthModeError(f"Unknown auth mode(={auth_mode}).") from exc


def run_auth_matrix(
    config: RunConfig,
    *,
    environment_factory: EnvironmentFactory,
    case_factories: Sequence[CaseFactory],
) -> tuple[UnitResult, ...]:
    """Run every planned branch sequentially with its own configuration copy.

    A branch that blows up is reported as failed and does not stop the
    branches after it.
    """
    results: list[UnitResult] = []
    for variant in plan_branches(config.auth_mode):
        try:
            result = run_branch(
                variant,
                config.for_branch(variant),
                environment_factory=environment_factory,
                case_factories=case_factories,
            )
        except Exception as exc:  # pylint: disable=broad-exception-caught
            logger.exception("branch %s aborted", variant.value)
            result = UnitResult.failed(variant.value, f"branch aborted: {exc}")
        results.append(result)
    return tuple(results)
