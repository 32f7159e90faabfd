"""Build-graph command generation.

The host calls ``PrebuildCommandGenerator.create_build_commands`` once per
build-graph evaluation of the consuming target and schedules the returned
step before compiling that target.

The emitted step re-enters this package (``python -m ffi_prebuild run``)
so the graph path and the manual command share ``ExternalBuildRunner``.
The toolchain runs on every evaluation; its own incremental build decides
what to recompile. Staleness tracking for downstream steps stays correct
because artifacts are published into the declared output directory and
rewritten only when their content changes.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from ffi_prebuild.package.io import load_manifest
from ffi_prebuild.package.schema import PackageManifest
from ffi_prebuild.policy import (
    GrantedCapabilitiesPolicy,
    PermissionPolicy,
    require_permissions,
)
from ffi_prebuild.types import Capability

logger = logging.getLogger(__name__)

OUTPUT_SUBDIR = "artifacts"


@dataclass(frozen=True)
class BuildContext:
    """What the host tells a generator about the target being built.

    Attributes:
        package_root: The package directory.
        work_dir: Writable directory scoped to this generator.
        target_name: The consuming target.
        granted_capabilities: Capabilities the host sandbox grants.
    """

    package_root: Path
    work_dir: Path
    target_name: str
    granted_capabilities: frozenset[Capability] = frozenset()


@dataclass(frozen=True)
class BuildCommand:
    """A pre-build step for the host to schedule.

    Attributes:
        display_name: Shown by the host while the step runs.
        executable: Program to run.
        arguments: Program arguments.
        environment: Environment overrides applied by the host, as
            sorted name/value pairs so the command stays hashable.
        output_files_directory: Declared output directory.
    """

    display_name: str
    executable: Path
    arguments: tuple[str, ...]
    output_files_directory: Path
    environment: tuple[tuple[str, str], ...] = ()

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        return {
            "display_name": self.display_name,
            "executable": str(self.executable),
            "arguments": list(self.arguments),
            "environment": dict(self.environment),
            "output_files_directory": str(self.output_files_directory),
        }


def declared_output_dir(context: BuildContext) -> Path:
    """Return the declared output directory for ``context``."""
    return context.work_dir / OUTPUT_SUBDIR


class PrebuildCommandGenerator:
    """Emit the pre-build step for a package's external build.

    Args:
        policy: Permission policy; defaults to the context's host grants.
        python_executable: Interpreter that runs the step.
        manifest_loader: Loads the manifest for a package root.
    """

    def __init__(
        self,
        policy: PermissionPolicy | None = None,
        python_executable: Path | None = None,
        manifest_loader: Callable[[Path], PackageManifest] = load_manifest,
    ) -> None:
        self.policy = policy
        self.python_executable = python_executable or Path(sys.executable)
        self.manifest_loader = manifest_loader

    def create_build_commands(self, context: BuildContext) -> list[BuildCommand]:
        """Return the single pre-build step for ``context``.

        Raises:
            PermissionDeniedError: If the host does not grant a declared
                capability; nothing is emitted.
            ManifestError: If the package manifest is invalid.
        """
        manifest = self.manifest_loader(context.package_root)
        policy = self.policy or GrantedCapabilitiesPolicy(context.granted_capabilities)
        require_permissions(policy, manifest.permissions)

        output_dir = declared_output_dir(context)
        arguments = [
            "-m",
            "ffi_prebuild",
            "run",
            "--package-root",
            str(context.package_root),
            "--output-dir",
            str(output_dir),
        ]
        for capability in sorted(c.value for c in context.granted_capabilities):
            arguments.extend(["--grant", capability])

        command = BuildCommand(
            display_name=(
                f"Building {manifest.name} native library "
                f"with {manifest.external.toolchain}"
            ),
            executable=self.python_executable,
            arguments=tuple(arguments),
            output_files_directory=output_dir,
        )
        logger.debug("Pre-build step for %s: %s", context.target_name, command)
        return [command]


__all__ = [
    "OUTPUT_SUBDIR",
    "BuildCommand",
    "BuildContext",
    "PrebuildCommandGenerator",
    "declared_output_dir",
]
