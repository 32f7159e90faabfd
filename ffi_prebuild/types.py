"""Shared type definitions for ffi_prebuild.

This module contains enums and dataclasses shared across subpackages to
avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum


class Capability(str, Enum):
    """A privileged capability the host sandbox may grant."""

    NETWORK = "network"
    PACKAGE_WRITE = "package-write"


class PermissionDecision(str, Enum):
    """Outcome of evaluating a permission request."""

    ALLOW = "allow"
    DENY = "deny"


class ToolchainSource(str, Enum):
    """Where a toolchain executable was resolved from."""

    OVERRIDE = "override"
    USER_INSTALL = "user-install"
    SEARCH_PATH = "search-path"


@dataclass
class ArtifactInfo:
    """Information about a published artifact."""

    filename: str
    size_bytes: int
    sha256: str


__all__ = [
    "ArtifactInfo",
    "Capability",
    "PermissionDecision",
    "ToolchainSource",
]
