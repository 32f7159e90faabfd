"""Tests for policy.py module."""

import pytest

from ffi_prebuild.errors import PermissionDeniedError
from ffi_prebuild.package.schema import default_permissions
from ffi_prebuild.policy import (
    GrantedCapabilitiesPolicy,
    OperatorConsentPolicy,
    require_permissions,
)
from ffi_prebuild.types import Capability, PermissionDecision


class RecordingPolicy:
    """Policy that records every request it sees."""

    def __init__(self, decision: PermissionDecision) -> None:
        self.decision = decision
        self.seen: list[Capability] = []

    def evaluate(self, request):
        self.seen.append(request.capability)
        return self.decision


class TestGrantedCapabilitiesPolicy:
    """Tests for GrantedCapabilitiesPolicy."""

    def test_allows_granted(self):
        """Granted capabilities are allowed."""
        network, write = default_permissions()
        policy = GrantedCapabilitiesPolicy([Capability.NETWORK])

        assert policy.evaluate(network) is PermissionDecision.ALLOW
        assert policy.evaluate(write) is PermissionDecision.DENY

    def test_empty_grants_deny(self):
        """No grants means every request is denied."""
        policy = GrantedCapabilitiesPolicy([])
        for request in default_permissions():
            assert policy.evaluate(request) is PermissionDecision.DENY


class TestRequirePermissions:
    """Tests for require_permissions function."""

    def test_all_granted(self):
        """Nothing raised when every capability is granted."""
        require_permissions(
            GrantedCapabilitiesPolicy(list(Capability)), default_permissions()
        )

    def test_operator_consent(self):
        """The operator policy allows everything."""
        require_permissions(OperatorConsentPolicy(), default_permissions())

    def test_first_denial_raises(self):
        """The denied capability and its reason are reported."""
        with pytest.raises(PermissionDeniedError) as exc_info:
            require_permissions(
                GrantedCapabilitiesPolicy([Capability.NETWORK]), default_permissions()
            )

        error = exc_info.value
        assert error.capability == "package-write"
        assert error.reason == "write build artifacts"
        assert error.code == "permission_denied"
        assert "ffi-prebuild run" in str(error)

    def test_binary_gate_stops_at_first_denial(self):
        """Evaluation stops at the first denial."""
        policy = RecordingPolicy(PermissionDecision.DENY)

        with pytest.raises(PermissionDeniedError):
            require_permissions(policy, default_permissions())

        assert policy.seen == [Capability.NETWORK]

    def test_swappable_policy(self):
        """Any object with evaluate() can act as a policy."""
        policy = RecordingPolicy(PermissionDecision.ALLOW)

        require_permissions(policy, default_permissions())

        assert policy.seen == [Capability.NETWORK, Capability.PACKAGE_WRITE]
