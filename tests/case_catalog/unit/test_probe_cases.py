"""Registered probe case tests."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest
import yaml
from pilot_e2e_harness.case_catalog import (
    CASE_REGISTRY,
    TestCaseError,
    registered_case_names,
)
from pilot_e2e_harness.case_catalog.probe_cases import (
    EgressRules,
    HttpReachability,
    Ingress,
    RoutingRules,
    RoutingRulesToEgress,
    Zipkin,
)
from pilot_e2e_harness.cluster_environment import ClusterEnvironment, CommandError, Kubectl
from pilot_e2e_harness.configuration import RunConfig


class _FakeMesh:
    """Answers exec calls like the echo client and logs with every request seen so far."""

    def __init__(
        self, *, status: int = 200, fail_on: tuple[str, ...] = (), trace_headers: bool = True
    ) -> None:
        self.status = status
        self.trace_headers = trace_headers
        self.fail_on = fail_on
        self.calls: list[tuple[str, ...]] = []
        self.applied_documents: list[dict] = []

    def __call__(self, command: tuple[str, ...]) -> str:
        self.calls.append(command)
        joined = " ".join(command)
        if any(fragment in joined for fragment in self.fail_on):
            raise CommandError(f"failed: {joined}")
        if "apply" in command:
            with open(command[-1], encoding="utf-8") as handle:
                self.applied_documents.extend(yaml.safe_load_all(handle))
        if "exec" in command:
            output = f"[1] StatusCode={self.status}\n"
            if self.trace_headers:
                output += "[1] X-B3-Traceid=463ac35c9f6413ad\n[1] X-B3-Spanid=a2fb4a1d1a96d312\n"
            return output
        if "logs" in command:
            return "\n".join(" ".join(call) for call in self.calls if "exec" in call)
        return ""

    def exec_calls(self) -> list[tuple[str, ...]]:
        return [call for call in self.calls if "exec" in call]


def _environment(mesh: _FakeMesh, **changes) -> ClusterEnvironment:
    config = RunConfig(
        hub="h",
        tag="t",
        kube_config="/kube",
        istio_namespace="istio-system",
        namespace="apps",
        **changes,
    )
    return ClusterEnvironment(config, kubectl=Kubectl("/kube", run_command=mesh))


def test_registry_order_and_names_are_stable() -> None:
    assert registered_case_names() == (
        "http-reachability",
        "grpc-reachability",
        "tcp-reachability",
        "headless-reachability",
        "ingress",
        "egress-rules",
        "routing-rules",
        "routing-rules-to-egress",
        "zipkin",
        "auth-exclusion",
        "kubernetes-external-name-services",
    )
    assert len(set(registered_case_names())) == len(CASE_REGISTRY)


@pytest.mark.parametrize("case_type", CASE_REGISTRY, ids=registered_case_names())
def test_every_case_completes_its_lifecycle_against_a_healthy_mesh(case_type) -> None:
    mesh = _FakeMesh()
    case = case_type(_environment(mesh))

    case.setup()
    case.run()
    case.teardown()

    assert str(case) == case_type.name
    assert mesh.exec_calls()


def test_http_reachability_checks_every_app_pair_without_auth() -> None:
    mesh = _FakeMesh()
    case = HttpReachability(_environment(mesh))

    case.run()

    targets = [(call[6], call[12]) for call in mesh.exec_calls()]
    assert len(targets) == 9
    assert ("deployment/t", "http://a/") in targets


def test_http_reachability_skips_plain_to_sidecar_pairs_with_auth() -> None:
    mesh = _FakeMesh()
    case = HttpReachability(_environment(mesh, auth=True))

    case.run()

    targets = [(call[6], call[12]) for call in mesh.exec_calls()]
    assert len(targets) == 7
    assert ("deployment/t", "http://a/") not in targets
    assert ("deployment/t", "http://t/") in targets


def test_unexpected_status_fails_the_run() -> None:
    case = HttpReachability(_environment(_FakeMesh(status=503)))

    with pytest.raises(TestCaseError, match="did not return 200"):
        case.run()


def test_exec_failure_is_reported_as_case_error() -> None:
    case = HttpReachability(_environment(_FakeMesh(fail_on=("exec",))))

    with pytest.raises(TestCaseError, match="http-reachability: a -> http://a/"):
        case.run()


def test_access_logs_are_checked_when_enabled() -> None:
    mesh = _FakeMesh()
    case = RoutingRules(_environment(mesh, check_logs=True))

    case.setup()
    case.run()
    case.teardown()

    log_calls = [call for call in mesh.calls if "logs" in call]
    assert log_calls
    assert log_calls[0][-4:] == ("logs", "deployment/b", "-c", "istio-proxy")


def test_missing_access_log_entry_fails_the_run() -> None:
    mesh = _FakeMesh()
    environment = _environment(mesh, check_logs=True)
    case = RoutingRules(environment)

    def _empty_logs(command: tuple[str, ...]) -> str:
        return "" if "logs" in command else mesh(command)

    environment.kubectl = Kubectl("/kube", run_command=_empty_logs)

    with pytest.raises(TestCaseError, match="missing from b proxy access log"):
        case.run()


def test_rules_are_applied_and_deleted_in_the_app_namespace() -> None:
    mesh = _FakeMesh()
    case = RoutingRules(_environment(mesh))

    case.setup()
    rules_path = Path(next(call for call in mesh.calls if "apply" in call)[-1])
    case.teardown()

    assert mesh.applied_documents[0]["kind"] == "RouteRule"
    assert mesh.applied_documents[0]["metadata"]["namespace"] == "apps"
    delete_call = next(call for call in mesh.calls if "delete" in call)
    assert delete_call[3:5] == ("-n", "apps")
    assert str(rules_path) in delete_call
    assert not rules_path.parent.exists()


def test_v1alpha1_rules_are_the_default_flavour() -> None:
    mesh = _FakeMesh()
    case = RoutingRulesToEgress(_environment(mesh))

    case.setup()
    case.run()
    case.teardown()

    kinds = [document["kind"] for document in mesh.applied_documents]
    assert kinds == ["EgressRule", "RouteRule"]
    assert {document["apiVersion"] for document in mesh.applied_documents} == {
        "config.istio.io/v1alpha2"
    }
    assert len(mesh.exec_calls()) == 1


def test_v1alpha2_alone_uses_networking_resources() -> None:
    mesh = _FakeMesh()
    case = RoutingRulesToEgress(_environment(mesh, v1alpha1=False, v1alpha2=True))

    case.setup()
    case.teardown()

    kinds = [document["kind"] for document in mesh.applied_documents]
    assert kinds == ["ServiceEntry", "VirtualService"]
    assert mesh.applied_documents[1]["spec"]["http"][0]["timeout"] == "10s"


def test_both_flavours_are_applied_and_exercised() -> None:
    mesh = _FakeMesh()
    case = RoutingRules(_environment(mesh, v1alpha1=True, v1alpha2=True))

    case.setup()
    case.run()
    case.teardown()

    kinds = [document["kind"] for document in mesh.applied_documents]
    assert kinds == ["RouteRule", "VirtualService"]
    assert len(mesh.exec_calls()) == 2


@pytest.mark.parametrize("case_type", [EgressRules, RoutingRules, RoutingRulesToEgress])
def test_disabled_routing_flavours_leave_rule_cases_idle(case_type) -> None:
    mesh = _FakeMesh()
    case = case_type(_environment(mesh, v1alpha1=False, v1alpha2=False))

    case.setup()
    case.run()
    case.teardown()

    assert case.rules() == []
    assert mesh.calls == []


def test_failed_rule_apply_removes_the_scratch_directory(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
    case = RoutingRules(_environment(_FakeMesh(fail_on=("apply",))))

    with pytest.raises(TestCaseError, match="applying rules failed"):
        case.setup()

    assert list(tmp_path.iterdir()) == []


def test_repeated_setup_failures_leave_nothing_behind(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(tempfile, "tempdir", str(tmp_path))
    mesh = _FakeMesh(fail_on=("apply",))

    for _ in range(3):
        with pytest.raises(TestCaseError):
            EgressRules(_environment(mesh)).setup()

    assert list(tmp_path.iterdir()) == []


def test_zipkin_requires_trace_headers_to_be_propagated() -> None:
    mesh = _FakeMesh(trace_headers=False)
    case = Zipkin(_environment(mesh))

    with pytest.raises(TestCaseError, match="did not propagate x-b3-traceid"):
        case.run()


def test_zipkin_passes_when_trace_headers_come_back() -> None:
    mesh = _FakeMesh()

    Zipkin(_environment(mesh)).run()

    assert mesh.exec_calls()[0][12] == "http://b/"


def test_egress_rule_failure_to_apply_is_a_setup_error() -> None:
    case = EgressRules(_environment(_FakeMesh(fail_on=("apply",))))

    with pytest.raises(TestCaseError, match="egress-rules: applying rules failed"):
        case.setup()


def test_rule_deletion_failure_is_a_teardown_error() -> None:
    mesh = _FakeMesh(fail_on=("delete",))
    case = EgressRules(_environment(mesh))
    case.setup()

    with pytest.raises(TestCaseError, match="deleting rules failed"):
        case.teardown()
    case.teardown()


def test_cases_without_rules_do_not_touch_the_cluster_in_setup() -> None:
    mesh = _FakeMesh()
    case = HttpReachability(_environment(mesh))

    case.setup()
    case.teardown()

    assert mesh.calls == []


def test_ingress_goes_through_the_ingress_service() -> None:
    mesh = _FakeMesh()
    case = Ingress(_environment(mesh))

    case.setup()
    case.run()
    case.teardown()

    assert mesh.applied_documents[0]["kind"] == "Ingress"
    assert mesh.exec_calls()[0][12] == "http://istio-ingress.istio-system/a"
