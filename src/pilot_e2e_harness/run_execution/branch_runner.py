"""Runs the case registry against one freshly built environment."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence

from pilot_e2e_harness.case_catalog.case_contract import CaseFactory, TestCase
from pilot_e2e_harness.cluster_environment.environment import Environment
from pilot_e2e_harness.configuration.loader import dump_run_config
from pilot_e2e_harness.configuration.run_settings import BranchVariant, RunConfig

from .run_contracts import UnitResult, attempt_name

logger = logging.getLogger(__name__)

EnvironmentFactory = Callable[[RunConfig], Environment]


def run_branch(
    variant: BranchVariant,
    config: RunConfig,
    *,
    environment_factory: EnvironmentFactory,
    case_factories: Sequence[CaseFactory],
) -> UnitResult:
    """Set up one environment, run the selected cases and release the environment.

    The environment is released on every exit path, unless the configuration
    asks to keep it (always, or only after a failure).
    """
    logger.info("starting branch %s", variant.value)
    environment = environment_factory(config)
    branch_failed = True
    try:
        result = _run_in_environment(variant, config, environment, case_factories)
        branch_failed = result.is_failed
        return result
    finally:
        _release(variant, config, environment, failed=branch_failed)


def _run_in_environment(
    variant: BranchVariant,
    config: RunConfig,
    environment: Environment,
    case_factories: Sequence[CaseFactory],
) -> UnitResult:
    logger.info("Deploying infrastructure\n%s", dump_run_config(environment.config))
    try:
        environment.setup()
    except Exception as exc:  # pylint: disable=broad-exception-caught
        environment.record_failure(exc)
        logger.error("branch %s: environment setup failed: %s", variant.value, exc)
        return UnitResult.failed(variant.value, f"environment setup failed: {exc}")

    attempts: list[UnitResult] = []
    for case in (factory(environment) for factory in case_factories):
        if config.selected_test and config.selected_test != case.name:
            continue
        for attempt in range(1, config.test_count + 1):
            result = _run_attempt(case, attempt_name(case.name, attempt, config.test_count))
            if result.is_failed:
                environment.record_failure(RuntimeError(result.message))
            attempts.append(result)

    if config.selected_test and not attempts:
        logger.warning("no registered test case named %r", config.selected_test)
    return UnitResult.aggregate(variant.value, tuple(attempts))


def _run_attempt(case: TestCase, name: str) -> UnitResult:
    try:
        case.setup()
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.error("%s: setup failed: %s", name, exc)
        return UnitResult.failed(name, f"setup failed: {exc}")

    try:
        case.run()
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.error("%s: %s", name, exc)
        return UnitResult.failed(name, str(exc))
    finally:
        _teardown_case(case, name)

    logger.info("%s: passed", name)
    return UnitResult.passed(name)


def _teardown_case(case: TestCase, name: str) -> None:
    try:
        case.teardown()
    except Exception as exc:  # pylint: disable=broad-exception-caught
        logger.warning("%s: teardown failed: %s", name, exc)


def _release(
    variant: BranchVariant, config: RunConfig, environment: Environment, *, failed: bool
) -> None:
    if config.skip_cleanup:
        logger.warning("branch %s: skip-cleanup set, environment left in place", variant.value)
        return
    if failed and config.skip_cleanup_on_failure:
        logger.warning(
            "branch %s failed and skip-cleanup-on-failure set, environment left in place",
            variant.value,
        )
        return
    try:
        environment.teardown()
    except Exception:  # pylint: disable=broad-exception-caught
        logger.exception("branch %s: environment teardown failed", variant.value)
