"""Run configuration resolution service."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import asdict, fields, replace
from pathlib import Path
from typing import Any

import yaml

from .run_settings import AuthMode, RunConfig

_STRING_FIELDS = frozenset(
    {
        "hub",
        "tag",
        "istio_namespace",
        "namespace",
        "registry",
        "kube_config",
        "error_logs_dir",
        "core_files_dir",
        "selected_test",
        "admission_service_name",
    }
)
_BOOL_FIELDS = frozenset(
    {
        "check_logs",
        "mixer",
        "v1alpha1",
        "v1alpha2",
        "use_automatic_injection",
        "use_admission_webhook",
        "debug_images_and_mode",
        "skip_cleanup",
        "skip_cleanup_on_failure",
    }
)
_INT_FIELDS = frozenset({"verbosity", "test_count", "debug_port"})
_ENVIRONMENT_DEFAULTS = (
    ("kube_config", "KUBECONFIG"),
    ("hub", "HUB"),
    ("tag", "TAG"),
)
# "auth" is derived per branch and cannot be configured directly.
_CONFIGURABLE_FIELDS = frozenset(field.name for field in fields(RunConfig)) - {"auth"}

VERBOSE_PROXY_VERBOSITY = 3


class ConfigurationError(Exception):
    """Raised when run configuration input is invalid."""


def resolve_run_config(
    *,
    config_path: Path | str | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    verbose: bool = False,
) -> RunConfig:
    """Merge defaults, environment, an optional YAML file and overrides into a RunConfig.

    Args:
      config_path: Optional YAML run-config file.
      overrides: Values from the command line. ``None`` values are ignored.
      environ: Environment used for HUB, TAG and KUBECONFIG defaults.
      verbose: Raise proxy verbosity to the debug level.

    Returns:
      The frozen run configuration.

    Raises:
      ConfigurationError: If any input is malformed.
    """
    values: dict[str, Any] = {}
    source_environ = os.environ if environ is None else environ
    for field_name, variable in _ENVIRONMENT_DEFAULTS:
        env_value = source_environ.get(variable, "").strip()
        if env_value:
            values[field_name] = env_value

    if config_path is not None:
        values.update(load_run_config_file(config_path))

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        values[key] = _validate_value(key, value, origin="option")

    if verbose:
        values["verbosity"] = VERBOSE_PROXY_VERBOSITY

    return replace(RunConfig(), **values)


def dump_run_config(config: RunConfig) -> str:
    """Render the configuration as YAML for diagnostic logging."""
    values = asdict(config)
    values["auth_mode"] = config.auth_mode_name
    return yaml.safe_dump(values, default_flow_style=False, sort_keys=False)


def load_run_config_file(config_path: Path | str) -> dict[str, Any]:
    """Load and validate the optional YAML run-config file."""
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Run configuration file not found: {path}")

    text = path.read_text(encoding="utf-8")
    try:
        parsed = yaml.safe_load(text)
    except yaml.YAMLError as exc:  # pragma: no cover - exercised indirectly
        raise ConfigurationError(f"Failed to parse run configuration file: {exc}") from exc

    if parsed is None:
        return {}
    if not isinstance(parsed, Mapping):
        raise ConfigurationError("Run configuration root must be a mapping.")

    return {key: _validate_value(key, value, origin="file") for key, value in parsed.items()}


def parse_auth_mode(value: Any) -> AuthMode | str:
    """Convert raw input into an AuthMode.

    Unrecognised names come back as lower-cased strings, so pre-flight checks
    can still skip the run. The auth matrix rejects them when it plans branches.
    """
    if isinstance(value, AuthMode):
        return value
    if not isinstance(value, str):
        raise ConfigurationError("auth_mode must be a string.")
    normalized = value.strip().lower()
    try:
        return AuthMode(normalized)
    except ValueError:
        return normalized


def _validate_value(key: Any, value: Any, *, origin: str) -> Any:
    if not isinstance(key, str) or key not in _CONFIGURABLE_FIELDS:
        raise ConfigurationError(f"Unknown run configuration {origin} key: {key}")
    if key == "auth_mode":
        return parse_auth_mode(value)
    if key == "test_count":
        return _require_positive_int(value, key)
    if key in _INT_FIELDS:
        return _require_non_negative_int(value, key)
    if key in _BOOL_FIELDS:
        return _require_bool(value, key)
    if key in _STRING_FIELDS:
        return _require_string(value, key)
    raise ConfigurationError(f"Unsupported run configuration key: {key}")  # pragma: no cover


def _require_string(value: Any, field_name: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ConfigurationError(f"{field_name} must be a string.")
    return value.strip()


def _require_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"{field_name} must be a boolean.")
    return value


def _require_non_negative_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{field_name} must be an integer.")
    if value < 0:
        raise ConfigurationError(f"{field_name} must not be negative.")
    return value


def _require_positive_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{field_name} must be an integer.")
    if value <= 0:
        raise ConfigurationError(f"{field_name} must be greater than zero.")
    return value
