"""Run configuration entities."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum


class AuthMode(str, Enum):
    """Which auth variants a run covers."""

    ENABLE = "enable"
    DISABLE = "disable"
    BOTH = "both"


class BranchVariant(str, Enum):
    """One side of the auth matrix."""

    NO_AUTH = "NoAuth"
    AUTH = "Auth"

    @property
    def auth_enabled(self) -> bool:
        return self is BranchVariant.AUTH


@dataclass(frozen=True)
class RunConfig:  # pylint: disable=too-many-instance-attributes
    """Immutable parameters of one harness run."""

    hub: str = ""
    tag: str = ""
    istio_namespace: str = ""
    namespace: str = ""
    registry: str = "kubernetes"
    verbosity: int = 2
    check_logs: bool = False
    kube_config: str = ""
    test_count: int = 1
    # Unknown names are kept as given and rejected by the auth matrix.
    auth_mode: AuthMode | str = AuthMode.BOTH
    auth: bool = False
    mixer: bool = True
    v1alpha1: bool = True
    v1alpha2: bool = False
    error_logs_dir: str = ""
    core_files_dir: str = ""
    selected_test: str = ""
    use_automatic_injection: bool = False
    use_admission_webhook: bool = False
    admission_service_name: str = "istio-pilot"
    debug_port: int = 0
    debug_images_and_mode: bool = True
    skip_cleanup: bool = False
    skip_cleanup_on_failure: bool = False

    @property
    def auth_mode_name(self) -> str:
        if isinstance(self.auth_mode, AuthMode):
            return self.auth_mode.value
        return self.auth_mode

    def for_branch(self, variant: BranchVariant) -> RunConfig:
        """Return the copy of this configuration used by one auth branch."""
        return replace(self, auth=variant.auth_enabled)
