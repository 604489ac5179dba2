"""Lifecycle of the shared cluster fixture for one auth branch."""

from __future__ import annotations

import logging
import secrets
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from pilot_e2e_harness.configuration.run_settings import RunConfig

from .control_plane_manifests import (
    Manifest,
    build_control_plane_manifests,
    build_test_app_manifests,
    deployment_names,
    write_manifests,
)
from .kubectl_client import CommandError, Kubectl

logger = logging.getLogger(__name__)

INJECTION_LABEL = "istio-injection=enabled"


class EnvironmentSetupError(Exception):
    """Raised when the shared fixture cannot be provisioned."""


class Environment(Protocol):
    """Shared fixture a branch tests against."""

    config: RunConfig

    def setup(self) -> None: ...

    def teardown(self) -> None: ...

    def record_failure(self, error: BaseException) -> None: ...


class ClusterEnvironment:
    """Namespaces, control plane and test apps deployed through kubectl.

    Namespaces left empty in the configuration are created with a random
    suffix and deleted again on teardown. Teardown never raises: every step
    is attempted and failures are logged.
    """

    def __init__(
        self,
        config: RunConfig,
        *,
        kubectl: Kubectl | None = None,
        name_suffix: Callable[[], str] | None = None,
    ) -> None:
        self.config = config
        self.kubectl = kubectl or Kubectl(config.kube_config)
        self.istio_namespace = config.istio_namespace
        self.namespace = config.namespace
        self.failure: BaseException | None = None
        self._name_suffix = name_suffix or (lambda: secrets.token_hex(4))
        self._created_namespaces: list[str] = []
        self._applied: list[tuple[Path, str]] = []
        self._workdir: Path | None = None

    def setup(self) -> None:
        """Provision namespaces and deploy the control plane and the apps."""
        try:
            self._provision()
        except (CommandError, OSError) as exc:
            raise EnvironmentSetupError(str(exc)) from exc

    def record_failure(self, error: BaseException) -> None:
        """Remember the first failure seen by the branch using this environment."""
        if self.failure is None:
            self.failure = error

    def teardown(self) -> None:
        """Release everything setup acquired."""
        if self.failure is not None and self.config.error_logs_dir:
            self._dump_pod_logs(Path(self.config.error_logs_dir))
        for manifest, namespace in reversed(self._applied):
            self._best_effort(
                f"delete {manifest.name}", self.kubectl.delete, manifest, namespace=namespace
            )
        self._applied.clear()
        for namespace in reversed(self._created_namespaces):
            self._best_effort(
                f"delete namespace {namespace}", self.kubectl.delete_namespace, namespace
            )
        self._created_namespaces.clear()
        if self._workdir is not None:
            shutil.rmtree(self._workdir, ignore_errors=True)
            self._workdir = None

    def verify_access_log(self, app: str, request_id: str) -> None:
        """Check that the sidecar of ``app`` logged the request with ``request_id``.

        Raises:
          CommandError: If the logs cannot be fetched or the id is missing.
        """
        output = self.kubectl.logs(
            f"deployment/{app}", namespace=self.namespace, container="istio-proxy"
        )
        if request_id not in output:
            raise CommandError(f"request id {request_id} missing from {app} proxy access log")

    def _provision(self) -> None:
        self.istio_namespace = self._ensure_namespace(self.istio_namespace, "istio-system")
        self.namespace = self._ensure_namespace(self.namespace, "istio-test-app")
        if self.config.use_automatic_injection:
            self.kubectl.label_namespace(self.namespace, INJECTION_LABEL)

        self._workdir = Path(tempfile.mkdtemp(prefix="pilot-e2e-"))
        control_plane = build_control_plane_manifests(self.config, self.istio_namespace)
        apps = build_test_app_manifests(self.config, self.namespace, self.istio_namespace)
        self._deploy(self._workdir / "control-plane.yaml", control_plane, self.istio_namespace)
        self._deploy(self._workdir / "apps.yaml", apps, self.namespace)

    def _ensure_namespace(self, configured: str, prefix: str) -> str:
        if configured:
            return configured
        name = f"{prefix}-{self._name_suffix()}"
        self.kubectl.create_namespace(name)
        self._created_namespaces.append(name)
        logger.info("created temporary namespace %s", name)
        return name

    def _deploy(self, path: Path, manifests: list[Manifest], namespace: str) -> None:
        manifest_path = write_manifests(path, manifests)
        self._applied.append((manifest_path, namespace))
        self.kubectl.apply(manifest_path, namespace=namespace)
        for deployment in deployment_names(manifests):
            self.kubectl.wait_for_rollout(deployment, namespace=namespace)

    def _dump_pod_logs(self, destination: Path) -> None:
        try:
            destination.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning("cannot create error log directory %s: %s", destination, exc)
            return
        for namespace in (self.istio_namespace, self.namespace):
            if not namespace:
                continue
            try:
                pods = self.kubectl.pod_names(namespace=namespace)
            except CommandError as exc:
                logger.warning("cannot list pods in %s: %s", namespace, exc)
                continue
            for pod in pods:
                pod_name = pod.split("/", 1)[-1]
                try:
                    text = self.kubectl.logs(pod, namespace=namespace)
                    (destination / f"{namespace}_{pod_name}.log").write_text(text, encoding="utf-8")
                except (CommandError, OSError) as exc:
                    logger.warning("cannot save logs of %s/%s: %s", namespace, pod_name, exc)

    @staticmethod
    def _best_effort(description: str, action: Callable[..., object], *args, **kwargs) -> None:
        try:
            action(*args, **kwargs)
        except CommandError as exc:
            logger.warning("teardown step failed (%s): %s", description, exc)
