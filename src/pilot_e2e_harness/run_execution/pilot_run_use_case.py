"""Run execution use-case service."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from pilot_e2e_harness.case_catalog.case_contract import CaseFactory
from pilot_e2e_harness.case_catalog.probe_cases import CASE_REGISTRY
from pilot_e2e_harness.cluster_environment.environment import ClusterEnvironment
from pilot_e2e_harness.configuration import ConfigurationError, RunConfig, resolve_run_config
from pilot_e2e_harness.preflight import evaluate_skip_reason

from .auth_matrix import UnknownAuthModeError, run_auth_matrix
from .branch_runner import EnvironmentFactory
from .run_contracts import RUN_UNIT_NAME, RunOutcome, RunRequest, UnitResult

logger = logging.getLogger(__name__)


class RunExecutionError(Exception):
    """Raised when a run use case cannot be completed."""


def execute_pilot_run(
    request: RunRequest,
    *,
    environment_factory: EnvironmentFactory | None = None,
    case_factories: Sequence[CaseFactory] | None = None,
) -> RunOutcome:
    """Resolve the run configuration and execute one full harness run."""
    try:
        config = resolve_run_config(
            config_path=request.config_path,
            overrides=request.overrides,
            verbose=request.verbose,
        )
    except ConfigurationError as exc:
        raise RunExecutionError(str(exc)) from exc
    return run_pilot_suite(
        config,
        environment_factory=environment_factory,
        case_factories=case_factories,
    )


def run_pilot_suite(
    config: RunConfig,
    *,
    environment_factory: EnvironmentFactory | None = None,
    case_factories: Sequence[CaseFactory] | None = None,
) -> RunOutcome:
    """Apply the skip policy, then run the auth matrix for an already resolved config."""
    resolved_environment_factory = environment_factory or ClusterEnvironment
    resolved_case_factories = tuple(case_factories) if case_factories is not None else CASE_REGISTRY

    skip_reason = evaluate_skip_reason(config)
    if skip_reason is not None:
        logger.warning(skip_reason)
        return RunOutcome(result=UnitResult.skipped(RUN_UNIT_NAME, skip_reason))

    try:
        branches = run_auth_matrix(
            config,
            environment_factory=resolved_environment_factory,
            case_factories=resolved_case_factories,
        )
    except UnknownAuthModeError as exc:
        raise RunExecutionError(str(exc)) from exc
    return RunOutcome(result=UnitResult.aggregate(RUN_UNIT_NAME, branches))
