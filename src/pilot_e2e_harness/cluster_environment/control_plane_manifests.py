"""Kubernetes manifest generation for the control plane and the test apps.

Manifests are built as plain dictionaries and written as multi-document
YAML, so the environment can apply and later delete exactly what it
deployed.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml

from pilot_e2e_harness.configuration.run_settings import RunConfig

Manifest = dict[str, Any]

HTTP_PORT = 80
GRPC_PORT = 7070
TCP_PORT = 9090
HEADLESS_PORT = 10090
DISCOVERY_PORT = 15007
MIXER_PORT = 9091

# Apps deployed for every branch. "t" runs without a sidecar.
SIDECAR_APPS = ("a", "b")
PLAIN_APPS = ("t",)
HEADLESS_APP = "headless"
EXTERNAL_NAME_SERVICE = "external-name"
INGRESS_SERVICE = "istio-ingress"


def build_control_plane_manifests(config: RunConfig, istio_namespace: str) -> list[Manifest]:
    """Build mesh config, Pilot and the optional control-plane components."""
    manifests = [_mesh_config_map(config, istio_namespace)]
    manifests.extend(
        _deployment_with_service(
            "istio-pilot",
            [_pilot_container(config)],
            istio_namespace,
            {"http-discovery": DISCOVERY_PORT},
        )
    )
    if config.mixer:
        mixer = _container("mixer", _image(config, "mixer"), ["--configStoreURL=k8s://"])
        manifests.extend(
            _deployment_with_service(
                "istio-mixer", [mixer], istio_namespace, {"grpc-mixer": MIXER_PORT}
            )
        )
    if config.auth:
        ca = _container(
            "istio-ca",
            _image(config, "istio-ca"),
            ["--istio-ca-storage-namespace", istio_namespace],
        )
        manifests.append(_deployment("istio-ca", [ca], istio_namespace))
    if config.use_automatic_injection:
        injector = _container(
            "sidecar-injector",
            _image(config, "sidecar_injector"),
            ["--meshConfig", "/etc/istio/config/mesh", "--port", "443"],
        )
        manifests.extend(
            _deployment_with_service(
                "istio-sidecar-injector", [injector], istio_namespace, {"https-injector": 443}
            )
        )
    ingress = _container(
        "istio-ingress",
        _image(config, _proxy_image_name(config)),
        ["proxy", "ingress", "-v", str(config.verbosity)],
    )
    manifests.extend(
        _deployment_with_service(
            INGRESS_SERVICE,
            [ingress],
            istio_namespace,
            {"http": HTTP_PORT},
            service_type="LoadBalancer",
        )
    )
    return manifests


def build_test_app_manifests(
    config: RunConfig, namespace: str, istio_namespace: str
) -> list[Manifest]:
    """Build the echo apps and services the test cases probe."""
    manifests: list[Manifest] = []
    ports = {"http": HTTP_PORT, "grpc": GRPC_PORT, "tcp": TCP_PORT}
    for app in SIDECAR_APPS:
        containers = [_app_container(config)]
        if not config.use_automatic_injection:
            containers.append(_sidecar_container(config, istio_namespace))
        manifests.extend(_deployment_with_service(app, containers, namespace, ports))
    for app in PLAIN_APPS:
        manifests.extend(_deployment_with_service(app, [_app_container(config)], namespace, ports))

    headless_containers = [_app_container(config, port=HEADLESS_PORT)]
    if not config.use_automatic_injection:
        headless_containers.append(_sidecar_container(config, istio_namespace))
    manifests.extend(
        _deployment_with_service(
            HEADLESS_APP,
            headless_containers,
            namespace,
            {"http": HEADLESS_PORT},
            headless=True,
        )
    )
    manifests.append(
        {
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": {"name": EXTERNAL_NAME_SERVICE, "namespace": namespace},
            "spec": {"type": "ExternalName", "externalName": f"b.{namespace}.svc.cluster.local"},
        }
    )
    return manifests


def deployment_names(manifests: Iterable[Manifest]) -> tuple[str, ...]:
    """Return the names of the Deployments in rendering order."""
    return tuple(
        manifest["metadata"]["name"] for manifest in manifests if manifest["kind"] == "Deployment"
    )


def write_manifests(path: Path, manifests: list[Manifest]) -> Path:
    """Write manifests to file (multi-document YAML)."""
    with open(path, "w", encoding="utf-8") as handle:
        yaml.safe_dump_all(manifests, handle, default_flow_style=False, sort_keys=False)
    return path


def _image(config: RunConfig, name: str) -> str:
    return f"{config.hub}/{name}:{config.tag}"


def _proxy_image_name(config: RunConfig) -> str:
    return "proxy_debug" if config.debug_images_and_mode else "proxy"


def _mesh_config_map(config: RunConfig, istio_namespace: str) -> Manifest:
    mesh: dict[str, Any] = {
        "authPolicy": "MUTUAL_TLS" if config.auth else "NONE",
        "ingressService": INGRESS_SERVICE,
        "defaultConfig": {
            "discoveryAddress": f"istio-pilot.{istio_namespace}:{DISCOVERY_PORT}",
            "proxyAdminPort": 15000,
        },
    }
    if config.mixer:
        mesh["mixerAddress"] = f"istio-mixer.{istio_namespace}:{MIXER_PORT}"
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": "istio", "namespace": istio_namespace},
        "data": {"mesh": yaml.safe_dump(mesh, default_flow_style=False, sort_keys=False)},
    }


def _pilot_container(config: RunConfig) -> Manifest:
    args = ["discovery", "-v", str(config.verbosity), "--registries", config.registry]
    if config.use_admission_webhook:
        args.extend(["--admission-service", config.admission_service_name])
    container = _container("discovery", _image(config, "pilot"), args)
    if config.debug_port:
        container["ports"].append({"containerPort": config.debug_port, "name": "debug"})
    return container


def _app_container(config: RunConfig, *, port: int = HTTP_PORT) -> Manifest:
    args = ["--port", str(port), "--grpc", str(GRPC_PORT), "--tcp", str(TCP_PORT)]
    container = _container("app", _image(config, "app"), args)
    container["ports"] = [
        {"containerPort": port},
        {"containerPort": GRPC_PORT},
        {"containerPort": TCP_PORT},
    ]
    return container


def _sidecar_container(config: RunConfig, istio_namespace: str) -> Manifest:
    args = [
        "proxy",
        "sidecar",
        "-v",
        str(config.verbosity),
        "--discoveryAddress",
        f"istio-pilot.{istio_namespace}:{DISCOVERY_PORT}",
    ]
    if config.auth:
        args.extend(["--controlPlaneAuthPolicy", "MUTUAL_TLS"])
    container = _container("istio-proxy", _image(config, _proxy_image_name(config)), args)
    if config.core_files_dir:
        container["env"] = [{"name": "ISTIO_CORE_DUMP_DIR", "value": config.core_files_dir}]
    return container


def _container(name: str, image: str, args: list[str]) -> Manifest:
    return {
        "name": name,
        "image": image,
        "imagePullPolicy": "IfNotPresent",
        "args": args,
        "ports": [],
    }


def _deployment(name: str, containers: list[Manifest], namespace: str) -> Manifest:
    return {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": {"app": name}},
            "template": {
                "metadata": {"labels": {"app": name}},
                "spec": {"containers": containers},
            },
        },
    }


def _deployment_with_service(  # pylint: disable=too-many-arguments
    name: str,
    containers: list[Manifest],
    namespace: str,
    ports: dict[str, int],
    *,
    service_type: str = "ClusterIP",
    headless: bool = False,
) -> list[Manifest]:
    service_spec: dict[str, Any] = {
        "selector": {"app": name},
        "ports": [
            {"name": port_name, "port": port, "targetPort": port}
            for port_name, port in ports.items()
        ],
    }
    if headless:
        service_spec["clusterIP"] = "None"
    else:
        service_spec["type"] = service_type
    service = {
        "apiVersion": "v1",
        "kind": "Service",
        "metadata": {"name": name, "namespace": namespace},
        "spec": service_spec,
    }
    return [_deployment(name, containers, namespace), service]
