"""Permission policies for declared capabilities.

A policy makes a binary allow/deny decision per request. The host's grants
feed ``GrantedCapabilitiesPolicy``; an operator running the manual command
consents to everything via ``OperatorConsentPolicy``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from ffi_prebuild.errors import PermissionDeniedError
from ffi_prebuild.package.schema import PermissionRequest
from ffi_prebuild.types import Capability, PermissionDecision

logger = logging.getLogger(__name__)


class PermissionPolicy(Protocol):
    """Decide whether a capability request is granted."""

    def evaluate(self, request: PermissionRequest) -> PermissionDecision: ...


class GrantedCapabilitiesPolicy:
    """Allow exactly the capabilities the host granted."""

    def __init__(self, granted: Iterable[Capability]) -> None:
        self.granted = frozenset(granted)

    def evaluate(self, request: PermissionRequest) -> PermissionDecision:
        if request.capability in self.granted:
            return PermissionDecision.ALLOW
        return PermissionDecision.DENY


class OperatorConsentPolicy:
    """Allow every request; the operator consented by invoking the command."""

    def evaluate(self, request: PermissionRequest) -> PermissionDecision:
        return PermissionDecision.ALLOW


def require_permissions(
    policy: PermissionPolicy,
    requests: Iterable[PermissionRequest],
) -> None:
    """Evaluate each request once; raise on the first denial.

    Raises:
        PermissionDeniedError: If any request is denied.
    """
    for request in requests:
        decision = policy.evaluate(request)
        logger.debug("Permission %s: %s", request.capability.value, decision.value)
        if decision is not PermissionDecision.ALLOW:
            logger.error("Permission denied: %s", request.describe())
            raise PermissionDeniedError(request.capability.value, request.reason)


__all__ = [
    "GrantedCapabilitiesPolicy",
    "OperatorConsentPolicy",
    "PermissionPolicy",
    "require_permissions",
]
