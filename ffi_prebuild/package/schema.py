"""Pydantic models for the package manifest.

The manifest declares the single external build a package depends on and
the privileged capabilities that build needs from the host sandbox.
"""

from pathlib import PurePosixPath
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ffi_prebuild.types import Capability

DEFAULT_NETWORK_PORTS = [80, 443]


def _check_relative(value: str, field_name: str) -> str:
    path = PurePosixPath(value)
    if path.is_absolute():
        raise ValueError(f"{field_name} must be relative, got '{value}'")
    if ".." in path.parts:
        raise ValueError(f"{field_name} must not contain '..', got '{value}'")
    return value


class ExternalBuildSpec(BaseModel):
    """Schema for the external build a package depends on.

    Attributes:
        root: External project directory, relative to the package root.
        toolchain: Bare command name of the external toolchain.
        command: Arguments passed to the toolchain executable.
        output_dir: Toolchain output directory, relative to ``root``.
        artifact_patterns: Glob patterns of files to publish from ``output_dir``.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    root: str = Field(default="ffi", description="External project root")
    toolchain: str = Field(
        default="cargo", min_length=1, description="Toolchain command name"
    )
    command: tuple[str, ...] = Field(
        default=("build", "--release"),
        description="Arguments passed to the toolchain",
    )
    output_dir: str = Field(
        default="target/release",
        description="Toolchain output directory relative to root",
    )
    artifact_patterns: tuple[str, ...] = Field(
        default=("*.a",),
        min_length=1,
        description="Glob patterns of artifacts to publish",
    )

    @field_validator("root")
    @classmethod
    def validate_root(cls, v: str) -> str:
        """Validate root stays inside the package directory."""
        return _check_relative(v, "root")

    @field_validator("output_dir")
    @classmethod
    def validate_output_dir(cls, v: str) -> str:
        """Validate output_dir stays inside the external project."""
        return _check_relative(v, "output_dir")

    @field_validator("toolchain")
    @classmethod
    def validate_toolchain(cls, v: str) -> str:
        """Validate toolchain is a bare command name."""
        if "/" in v:
            raise ValueError(
                "toolchain must be a bare command name; "
                "use FFI_PREBUILD_TOOLCHAIN_PATH for an explicit path"
            )
        return v


class PermissionRequest(BaseModel):
    """Schema for a privileged capability request.

    Attributes:
        capability: The capability requested.
        reason: Justification shown to the operator or host.
        scope: Network host scope (network requests only).
        ports: Network ports (network requests only).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    capability: Capability
    reason: str = Field(min_length=1, description="Human-readable justification")
    scope: Literal["all", "local"] | None = Field(
        default=None, description="Network host scope"
    )
    ports: tuple[int, ...] = Field(default=(), description="Network ports")

    @field_validator("ports")
    @classmethod
    def validate_ports(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        """Validate ports are in range."""
        for port in v:
            if not 0 < port < 65536:
                raise ValueError(f"port out of range: {port}")
        return v

    @model_validator(mode="after")
    def validate_network_fields(self) -> "PermissionRequest":
        """Only network requests carry a scope and ports."""
        if self.capability != Capability.NETWORK and (self.scope or self.ports):
            raise ValueError("scope and ports apply to network requests only")
        return self

    def describe(self) -> str:
        """Return a one-line description for consent prompts."""
        if self.capability == Capability.NETWORK:
            ports = ", ".join(str(p) for p in self.ports) or "any"
            return (
                f"network access ({self.scope or 'all'} hosts, ports {ports}): "
                f"{self.reason}"
            )
        return f"write to package directory: {self.reason}"


def default_permissions() -> list[PermissionRequest]:
    """Return the capabilities an external toolchain build needs."""
    return [
        PermissionRequest(
            capability=Capability.NETWORK,
            reason="fetch toolchain dependencies",
            scope="all",
            ports=tuple(DEFAULT_NETWORK_PORTS),
        ),
        PermissionRequest(
            capability=Capability.PACKAGE_WRITE,
            reason="write build artifacts",
        ),
    ]


class PackageManifest(BaseModel):
    """Schema for a package's prebuild manifest.

    Attributes:
        name: Package name used in step display names.
        external: The single external build of this package.
        permissions: Capabilities required by the external build.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1, description="Package name")
    external: ExternalBuildSpec = Field(default_factory=ExternalBuildSpec)
    permissions: tuple[PermissionRequest, ...] = Field(
        default_factory=lambda: tuple(default_permissions()),
        description="Capabilities required by the external build",
    )

    @field_validator("permissions")
    @classmethod
    def validate_unique_capabilities(
        cls, v: tuple[PermissionRequest, ...]
    ) -> tuple[PermissionRequest, ...]:
        """Each capability may be requested once."""
        seen: set[Capability] = set()
        for request in v:
            if request.capability in seen:
                raise ValueError(f"duplicate permission: {request.capability.value}")
            seen.add(request.capability)
        return v


__all__ = [
    "DEFAULT_NETWORK_PORTS",
    "ExternalBuildSpec",
    "PackageManifest",
    "PermissionRequest",
    "default_permissions",
]
