"""Test case catalog exports."""

from .case_contract import CaseFactory, TestCase, TestCaseError
from .probe_cases import CASE_REGISTRY, MeshProbeCase, Probe, registered_case_names

__all__ = [
    "CaseFactory",
    "TestCase",
    "TestCaseError",
    "CASE_REGISTRY",
    "MeshProbeCase",
    "Probe",
    "registered_case_names",
]
