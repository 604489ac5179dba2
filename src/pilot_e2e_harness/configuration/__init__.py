"""Configuration domain exports."""

from .config_scaffold_builder import (
    DEFAULT_CONFIG_FILENAME,
    build_placeholder_configuration,
    write_placeholder_configuration,
)
from .loader import (
    ConfigurationError,
    dump_run_config,
    load_run_config_file,
    parse_auth_mode,
    resolve_run_config,
)
from .run_settings import AuthMode, BranchVariant, RunConfig

__all__ = [
    "AuthMode",
    "BranchVariant",
    "RunConfig",
    "ConfigurationError",
    "dump_run_config",
    "load_run_config_file",
    "parse_auth_mode",
    "resolve_run_config",
    "DEFAULT_CONFIG_FILENAME",
    "build_placeholder_configuration",
    "write_placeholder_configuration",
]
