"""Cluster environment domain exports."""

from .control_plane_manifests import build_control_plane_manifests, build_test_app_manifests
from .environment import ClusterEnvironment, Environment, EnvironmentSetupError
from .kubectl_client import CommandError, CommandRunner, Kubectl, run_checked_command

__all__ = [
    "ClusterEnvironment",
    "Environment",
    "EnvironmentSetupError",
    "CommandError",
    "CommandRunner",
    "Kubectl",
    "run_checked_command",
    "build_control_plane_manifests",
    "build_test_app_manifests",
]
