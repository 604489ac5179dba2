"""Run configuration scaffold generation helpers."""

from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_FILENAME = "pilot-e2e.yaml"

_CONFIG_SCAFFOLD_TEMPLATE = """# Run configuration template for pilot-e2e-harness.
# Every key is optional. Command-line options override values from this file,
# and this file overrides the HUB, TAG and KUBECONFIG environment variables.
# Commented-out keys keep their environment or built-in defaults.

# Cluster credentials. Without this key or KUBECONFIG the run is skipped.
# kube_config: /path/to/kubeconfig

# Image coordinates. Without them (here or in HUB and TAG) the run is skipped.
# hub: gcr.io/istio-testing
# tag: latest

# Leave namespaces empty to create and delete temporary ones.
# A fixed app namespace requires auth_mode enable or disable.
istio_namespace: ""
namespace: ""

# One of: enable, disable, both.
auth_mode: both

# Empty runs every registered test case (see `pilot-e2e list-cases`).
selected_test: ""
test_count: 1

registry: kubernetes
mixer: true
v1alpha1: true
v1alpha2: false
check_logs: false
use_automatic_injection: false
use_admission_webhook: false
admission_service_name: istio-pilot
debug_port: 0
debug_images_and_mode: true

# Per-pod logs are written here when a branch fails.
error_logs_dir: ""
core_files_dir: ""

skip_cleanup: false
skip_cleanup_on_failure: false
"""


def build_placeholder_configuration() -> str:
    """Build a YAML run configuration template with inline guidance."""
    return _CONFIG_SCAFFOLD_TEMPLATE


def write_placeholder_configuration(output_path: Path | str) -> Path:
    """Write the placeholder run configuration template to the requested output path.

    Args:
      output_path: Destination file path for the scaffold.

    Returns:
      The resolved destination path.

    Raises:
      FileExistsError: If the destination file already exists.
      OSError: If writing the scaffold fails.
    """
    destination = Path(output_path)
    if destination.exists():
        raise FileExistsError(f"Run configuration file already exists: {destination.resolve()}")
    destination.write_text(build_placeholder_configuration(), encoding="utf-8")
    return destination.resolve()
