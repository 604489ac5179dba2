"""Pre-flight checks that decide whether a run executes at all."""

from __future__ import annotations

from pilot_e2e_harness.configuration.run_settings import AuthMode, RunConfig


def evaluate_skip_reason(config: RunConfig) -> str | None:
    """Return why the run must be skipped, or None when it may proceed.

    Checks run in a fixed order and the first match wins. Nothing here
    touches the cluster.
    """
    if not config.kube_config:
        return "Env variable KUBECONFIG not set. Skipping tests"
    if not config.hub:
        return "HUB not specified. Skipping tests"
    if not config.tag:
        return "TAG not specified. Skipping tests"
    if config.namespace and config.auth_mode == AuthMode.BOTH:
        return (
            f"When namespace(={config.namespace}) is specified, "
            f"auth mode(={config.auth_mode_name}) must be one of enable or disable. "
            "Skipping tests."
        )
    return None
