"""Run execution domain exports."""

from .auth_matrix import UnknownAuthModeError, plan_branches, run_auth_matrix
from .branch_runner import EnvironmentFactory, run_branch
from .pilot_run_use_case import RunExecutionError, execute_pilot_run, run_pilot_suite
from .run_contracts import RUN_UNIT_NAME, RunOutcome, RunRequest, UnitResult, UnitStatus

__all__ = [
    "RUN_UNIT_NAME",
    "RunRequest",
    "RunOutcome",
    "UnitResult",
    "UnitStatus",
    "EnvironmentFactory",
    "RunExecutionError",
    "UnknownAuthModeError",
    "execute_pilot_run",
    "plan_branches",
    "run_auth_matrix",
    "run_branch",
    "run_pilot_suite",
]
