"""Registered mesh probe cases.

Every case applies its optional rule manifests in ``setup``, sends
in-cluster requests through the echo client in ``run`` and deletes its
rules in ``teardown``. Cases only hold a reference to the environment, so
the registry itself is shared by all branches.
"""

from __future__ import annotations

import shutil
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path

from pilot_e2e_harness.cluster_environment.control_plane_manifests import (
    EXTERNAL_NAME_SERVICE,
    GRPC_PORT,
    HEADLESS_APP,
    HEADLESS_PORT,
    INGRESS_SERVICE,
    PLAIN_APPS,
    SIDECAR_APPS,
    TCP_PORT,
    Manifest,
    write_manifests,
)
from pilot_e2e_harness.cluster_environment.environment import ClusterEnvironment
from pilot_e2e_harness.cluster_environment.kubectl_client import CommandError

from .case_contract import TestCaseError

EXTERNAL_HOST = "www.google.com"


@dataclass(frozen=True)
class Probe:
    """One request sent from ``source`` that must answer ``expected_status``."""

    source: str
    url: str
    expected_status: int = 200
    # App whose sidecar access log must contain the request id.
    destination: str | None = None
    # Headers the echo server must report back, lower case.
    expected_headers: tuple[str, ...] = ()


class MeshProbeCase:
    """Base class for the registered cases."""

    name = ""

    def __init__(self, environment: ClusterEnvironment) -> None:
        self.environment = environment
        self._rules_dir: Path | None = None
        self._rules_path: Path | None = None

    def __str__(self) -> str:
        return self.name

    def rules(self) -> list[Manifest]:
        return []

    def probes(self) -> tuple[Probe, ...]:
        raise NotImplementedError

    def setup(self) -> None:
        rules = self.rules()
        if not rules:
            return
        self._rules_dir = Path(tempfile.mkdtemp(prefix=f"pilot-e2e-{self.name}-"))
        try:
            self._rules_path = write_manifests(self._rules_dir / "rules.yaml", rules)
            self.environment.kubectl.apply(self._rules_path, namespace=self.environment.namespace)
        except (CommandError, OSError) as exc:
            self._discard_rules()
            raise TestCaseError(f"{self.name}: applying rules failed: {exc}") from exc

    def run(self) -> None:
        for probe in self.probes():
            self._send(probe)

    def teardown(self) -> None:
        if self._rules_path is None:
            return
        try:
            self.environment.kubectl.delete(self._rules_path, namespace=self.environment.namespace)
        except CommandError as exc:
            raise TestCaseError(f"{self.name}: deleting rules failed: {exc}") from exc
        finally:
            self._discard_rules()

    def _discard_rules(self) -> None:
        if self._rules_dir is not None:
            shutil.rmtree(self._rules_dir, ignore_errors=True)
        self._rules_dir = None
        self._rules_path = None

    def _send(self, probe: Probe) -> None:
        request_id = uuid.uuid4().hex
        command = ("client", "-url", probe.url, "-key", "X-Request-Id", "-val", request_id)
        try:
            output = self.environment.kubectl.exec_in(
                f"deployment/{probe.source}",
                command,
                namespace=self.environment.namespace,
                container="app",
            )
        except CommandError as exc:
            raise TestCaseError(f"{self.name}: {probe.source} -> {probe.url}: {exc}") from exc
        if f"StatusCode={probe.expected_status}" not in output:
            raise TestCaseError(
                f"{self.name}: {probe.source} -> {probe.url} did not return "
                f"{probe.expected_status}"
            )
        lowered = output.lower()
        for header in probe.expected_headers:
            if f"{header}=" not in lowered:
                raise TestCaseError(
                    f"{self.name}: {probe.source} -> {probe.url} did not propagate {header}"
                )
        if self.environment.config.check_logs and probe.destination:
            try:
                self.environment.verify_access_log(probe.destination, request_id)
            except CommandError as exc:
                raise TestCaseError(f"{self.name}: {exc}") from exc


# Routing rule flavours, each enabled by its own configuration switch.
V1ALPHA1_ROUTING_API = "config.istio.io/v1alpha2"
V1ALPHA2_ROUTING_API = "networking.istio.io/v1alpha3"


def _routing_apis(case: MeshProbeCase) -> tuple[str, ...]:
    config = case.environment.config
    apis = []
    if config.v1alpha1:
        apis.append(V1ALPHA1_ROUTING_API)
    if config.v1alpha2:
        apis.append(V1ALPHA2_ROUTING_API)
    return tuple(apis)


def _per_routing_api(case: MeshProbeCase, probe: Probe) -> tuple[Probe, ...]:
    """One probe for every enabled flavour; none when routing rules are disabled."""
    return (probe,) * len(_routing_apis(case))


def _reachable_pairs(auth: bool) -> list[tuple[str, str]]:
    apps = SIDECAR_APPS + PLAIN_APPS
    pairs = []
    for source in apps:
        for destination in apps:
            # Without a sidecar, "t" cannot reach mTLS-only apps.
            if auth and source in PLAIN_APPS and destination in SIDECAR_APPS:
                continue
            pairs.append((source, destination))
    return pairs


def _sidecar_destination(app: str) -> str | None:
    return app if app in SIDECAR_APPS else None


class HttpReachability(MeshProbeCase):
    name = "http-reachability"

    def probes(self) -> tuple[Probe, ...]:
        return tuple(
            Probe(source, f"http://{destination}/", destination=_sidecar_destination(destination))
            for source, destination in _reachable_pairs(self.environment.config.auth)
        )


class GrpcReachability(MeshProbeCase):
    name = "grpc-reachability"

    def probes(self) -> tuple[Probe, ...]:
        return tuple(
            Probe(source, f"grpc://{destination}:{GRPC_PORT}")
            for source, destination in _reachable_pairs(self.environment.config.auth)
        )


class TcpReachability(MeshProbeCase):
    name = "tcp-reachability"

    def probes(self) -> tuple[Probe, ...]:
        return tuple(
            Probe(source, f"tcp://{destination}:{TCP_PORT}")
            for source, destination in _reachable_pairs(self.environment.config.auth)
        )


class HeadlessReachability(MeshProbeCase):
    name = "headless-reachability"

    def probes(self) -> tuple[Probe, ...]:
        return tuple(
            Probe(source, f"http://{HEADLESS_APP}:{HEADLESS_PORT}") for source in SIDECAR_APPS
        )


class Ingress(MeshProbeCase):
    name = "ingress"

    def rules(self) -> list[Manifest]:
        return [
            {
                "apiVersion": "networking.k8s.io/v1",
                "kind": "Ingress",
                "metadata": {
                    "name": "ingress",
                    "namespace": self.environment.namespace,
                    "annotations": {"kubernetes.io/ingress.class": "istio"},
                },
                "spec": {
                    "rules": [
                        {
                            "http": {
                                "paths": [
                                    {
                                        "path": "/a",
                                        "pathType": "Prefix",
                                        "backend": {
                                            "service": {"name": "a", "port": {"number": 80}}
                                        },
                                    }
                                ]
                            }
                        }
                    ]
                },
            }
        ]

    def probes(self) -> tuple[Probe, ...]:
        ingress = f"{INGRESS_SERVICE}.{self.environment.istio_namespace}"
        return (Probe(PLAIN_APPS[0], f"http://{ingress}/a", destination="a"),)


def _egress_rule(case: MeshProbeCase, api: str) -> Manifest:
    namespace = case.environment.namespace
    if api == V1ALPHA2_ROUTING_API:
        return {
            "apiVersion": api,
            "kind": "ServiceEntry",
            "metadata": {"name": "google", "namespace": namespace},
            "spec": {
                "hosts": [EXTERNAL_HOST],
                "ports": [{"number": 80, "name": "http", "protocol": "HTTP"}],
            },
        }
    return {
        "apiVersion": api,
        "kind": "EgressRule",
        "metadata": {"name": "google", "namespace": namespace},
        "spec": {
            "destination": {"service": EXTERNAL_HOST},
            "ports": [{"port": 80, "protocol": "http"}],
        },
    }


class EgressRules(MeshProbeCase):
    name = "egress-rules"

    def rules(self) -> list[Manifest]:
        return [_egress_rule(self, api) for api in _routing_apis(self)]

    def probes(self) -> tuple[Probe, ...]:
        return _per_routing_api(self, Probe("a", f"http://{EXTERNAL_HOST}/"))


def _route_rule(
    case: MeshProbeCase, api: str, name: str, host: str, timeout: str | None = None
) -> Manifest:
    namespace = case.environment.namespace
    if api == V1ALPHA2_ROUTING_API:
        route: dict = {"route": [{"destination": {"host": host}, "weight": 100}]}
        if timeout:
            route["timeout"] = timeout
        return {
            "apiVersion": api,
            "kind": "VirtualService",
            "metadata": {"name": name, "namespace": namespace},
            "spec": {"hosts": [host], "http": [route]},
        }
    spec: dict = {"destination": {"name": host}, "route": [{"weight": 100}]}
    if timeout:
        spec["httpReqTimeout"] = {"simpleTimeout": {"timeout": timeout}}
    return {
        "apiVersion": api,
        "kind": "RouteRule",
        "metadata": {"name": name, "namespace": namespace},
        "spec": spec,
    }


class RoutingRules(MeshProbeCase):
    name = "routing-rules"

    def rules(self) -> list[Manifest]:
        return [_route_rule(self, api, "route-b", "b") for api in _routing_apis(self)]

    def probes(self) -> tuple[Probe, ...]:
        return _per_routing_api(self, Probe("a", "http://b/", destination="b"))


class RoutingRulesToEgress(MeshProbeCase):
    name = "routing-rules-to-egress"

    def rules(self) -> list[Manifest]:
        rules = []
        for api in _routing_apis(self):
            rules.append(_egress_rule(self, api))
            rules.append(_route_rule(self, api, "route-google", EXTERNAL_HOST, "10s"))
        return rules

    def probes(self) -> tuple[Probe, ...]:
        return _per_routing_api(self, Probe("a", f"http://{EXTERNAL_HOST}/"))


class Zipkin(MeshProbeCase):
    """The sidecar must start a trace and forward its B3 headers to the app."""

    name = "zipkin"

    def probes(self) -> tuple[Probe, ...]:
        return (
            Probe(
                "a",
                "http://b/",
                destination="b",
                expected_headers=("x-b3-traceid", "x-b3-spanid"),
            ),
        )


class AuthExclusion(MeshProbeCase):
    name = "auth-exclusion"

    def probes(self) -> tuple[Probe, ...]:
        pilot = f"istio-pilot.{self.environment.istio_namespace}:15007"
        return (Probe("a", f"http://{pilot}/v1/registration"),)


class KubernetesExternalNameServices(MeshProbeCase):
    name = "kubernetes-external-name-services"

    def probes(self) -> tuple[Probe, ...]:
        return (Probe("a", f"http://{EXTERNAL_NAME_SERVICE}/"),)


CASE_REGISTRY: tuple[type[MeshProbeCase], ...] = (
    HttpReachability,
    GrpcReachability,
    TcpReachability,
    HeadlessReachability,
    Ingress,
    EgressRules,
    RoutingRules,
    RoutingRulesToEgress,
    Zipkin,
    AuthExclusion,
    KubernetesExternalNameServices,
)


def registered_case_names() -> tuple[str, ...]:
    """Return the names of the registered cases in registry order."""
    return tuple(case_type.name for case_type in CASE_REGISTRY)
