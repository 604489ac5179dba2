"""Command line interface entry point."""

from __future__ import annotations

import logging
import sys

import click
from click.core import ParameterSource

from pilot_e2e_harness.case_catalog import registered_case_names
from pilot_e2e_harness.configuration import (
    DEFAULT_CONFIG_FILENAME,
    RunConfig,
    write_placeholder_configuration,
)
from pilot_e2e_harness.results_writing import render_run_report, summarize_attempts
from pilot_e2e_harness.run_execution import RunExecutionError, RunRequest, execute_pilot_run

_DEFAULTS = RunConfig()
_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class CliError(Exception):
    """Custom CLI error."""


class _ClickEchoHandler(logging.Handler):
    """Writes log records through click so they follow the current stderr."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:  # pylint: disable=broad-exception-caught
            self.handleError(record)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=_LOG_FORMAT,
        handlers=[_ClickEchoHandler()],
        force=True,
    )


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="pilot-e2e-harness")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="info",
    show_default=True,
    help="Harness log level.",
)
def cli(log_level: str) -> None:
    """End-to-end test harness for the Pilot service-mesh control plane."""
    _configure_logging(log_level)


@cli.command(name="generate-config")
@click.option(
    "--output",
    "output_path",
    required=False,
    default=DEFAULT_CONFIG_FILENAME,
    show_default=True,
    type=click.Path(path_type=str),
    help="Path to the YAML run configuration template to write",
)
def generate_config(output_path: str) -> None:
    """Generate a placeholder YAML run configuration with guidance comments."""
    try:
        resolved_output = write_placeholder_configuration(output_path)
    except (FileExistsError, OSError) as exc:
        raise CliError(str(exc)) from exc
    click.echo(str(resolved_output))


@cli.command(name="list-cases")
def list_cases() -> None:
    """List registered test cases in execution order."""
    for name in registered_case_names():
        click.echo(name)


@cli.command(name="run")
@click.option(
    "--config",
    "config_path",
    required=False,
    type=click.Path(path_type=str),
    help="Optional YAML run configuration file; options given here override it.",
)
@click.option("--hub", "hub", default=_DEFAULTS.hub, help="Docker hub (default: $HUB).")
@click.option("--tag", "tag", default=_DEFAULTS.tag, help="Docker tag (default: $TAG).")
@click.option(
    "--ns",
    "istio_namespace",
    default=_DEFAULTS.istio_namespace,
    help="Namespace in which to install Istio components (empty to create/delete temporary one).",
)
@click.option(
    "-n",
    "--namespace",
    "namespace",
    default=_DEFAULTS.namespace,
    help="Namespace in which to install the applications (empty to create/delete temporary one).",
)
@click.option("--registry", "registry", default=_DEFAULTS.registry, show_default=True,
              help="Pilot registry.")
@click.option("--verbose", "verbose", is_flag=True, default=False,
              help="Debug level noise from proxies.")
@click.option("--logs", "check_logs", is_flag=True, default=_DEFAULTS.check_logs,
              help="Validate pod logs (expensive in long-running tests).")
@click.option(
    "--kubeconfig",
    "kube_config",
    default=_DEFAULTS.kube_config,
    help="Kube config file (default: $KUBECONFIG). Missing or empty skips the run.",
)
@click.option("--count", "test_count", type=int, default=_DEFAULTS.test_count, show_default=True,
              help="Number of times to run each test.")
@click.option(
    "--auth",
    "auth_mode",
    default=_DEFAULTS.auth_mode_name,
    show_default=True,
    help="Auth mode for the tests (choose from enable, disable, both).",
)
@click.option("--mixer/--no-mixer", "mixer", default=_DEFAULTS.mixer, show_default=True,
              help="Enable / disable mixer.")
@click.option("--v1alpha1/--no-v1alpha1", "v1alpha1", default=_DEFAULTS.v1alpha1,
              show_default=True, help="Enable / disable v1alpha1 routing rules.")
@click.option("--v1alpha2/--no-v1alpha2", "v1alpha2", default=_DEFAULTS.v1alpha2,
              show_default=True, help="Enable / disable v1alpha2 routing rules.")
@click.option(
    "--errorlogsdir",
    "error_logs_dir",
    default=_DEFAULTS.error_logs_dir,
    help="Store per pod logs as individual files in specific directory on failure.",
)
@click.option(
    "--core-files-dir",
    "core_files_dir",
    default=_DEFAULTS.core_files_dir,
    help="Copy core files to this directory on the Kubernetes node machine.",
)
@click.option("--testtype", "selected_test", default=_DEFAULTS.selected_test,
              help="Select test to run (default is all tests, see list-cases).")
@click.option("--use-sidecar-injector", "use_automatic_injection", is_flag=True,
              default=_DEFAULTS.use_automatic_injection, help="Use automatic sidecar injector.")
@click.option(
    "--use-admission-webhook",
    "use_admission_webhook",
    is_flag=True,
    default=_DEFAULTS.use_admission_webhook,
    help="Use k8s external admission webhook for config validation.",
)
@click.option("--admission-service-name", "admission_service_name",
              default=_DEFAULTS.admission_service_name, show_default=True,
              help="Name of admission webhook service name.")
@click.option("--debugport", "debug_port", type=int, default=_DEFAULTS.debug_port,
              show_default=True, help="Debugging port.")
@click.option("--debug/--no-debug", "debug_images_and_mode",
              default=_DEFAULTS.debug_images_and_mode, show_default=True,
              help="Use debug images and mode (--no-debug for prod).")
@click.option("--skip-cleanup", "skip_cleanup", is_flag=True, default=_DEFAULTS.skip_cleanup,
              help="Debug, skip clean up.")
@click.option("--skip-cleanup-on-failure", "skip_cleanup_on_failure", is_flag=True,
              default=_DEFAULTS.skip_cleanup_on_failure, help="Debug, skip clean up on failure.")
def run_tests(config_path: str | None, verbose: bool, **options: object) -> None:
    """Deploy the mesh, run the test cases under the auth matrix and tear down."""
    context = click.get_current_context()
    overrides = {
        name: value
        for name, value in options.items()
        if context.get_parameter_source(name) == ParameterSource.COMMANDLINE
    }
    try:
        outcome = execute_pilot_run(
            RunRequest(config_path=config_path, overrides=overrides, verbose=verbose)
        )
    except RunExecutionError as exc:
        raise CliError(str(exc)) from exc
    click.echo(render_run_report(outcome))
    if outcome.exit_code:
        summary = summarize_attempts(outcome)
        raise CliError(f"pilot e2e run failed: {summary.failed} failed unit(s)")


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for console_scripts wiring."""
    argv = argv if argv is not None else sys.argv[1:]
    try:
        cli.main(args=list(argv), standalone_mode=False)
    except CliError as exc:
        click.echo(str(exc), err=True)
        return 1
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except click.Abort:
        click.echo("Aborted.", err=True)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
