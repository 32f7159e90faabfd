"""Build service module.

This module provides the single entry point both callers share:
- ExternalBuildRunner.run(): permission gate, toolchain lookup, locked
  build, artifact publication
- Locking so concurrent invocations never share the external project's
  build state

The graph step (``python -m ffi_prebuild run`` emitted by the generator)
and the manual ``ffi-prebuild run`` command both end up here, so they share
identical error handling.
"""

from __future__ import annotations

import fcntl
import logging
import os
import time
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from ffi_prebuild.builds.artifacts import PublishResult, publish_artifacts
from ffi_prebuild.builds.runner import (
    BuildExecutionError,
    BuildResult,
    run_external_build,
)
from ffi_prebuild.config import DEFAULT_CANONICAL_PATH_DIRS
from ffi_prebuild.errors import ExternalBuildFailedError
from ffi_prebuild.policy import PermissionPolicy, require_permissions
from ffi_prebuild.toolchain.locator import (
    ResolvedToolchain,
    ToolchainLocator,
    user_install_candidates,
)

if TYPE_CHECKING:
    from ffi_prebuild.config import Settings
    from ffi_prebuild.package.schema import PackageManifest

logger = logging.getLogger(__name__)

LOCK_FILENAME = ".ffi-prebuild.lock"

BuildFn = Callable[..., BuildResult]


@contextmanager
def build_lock(
    lock_path: Path,
    timeout: float | None = None,
) -> Iterator[None]:
    """Acquire an exclusive cross-process lock on ``lock_path``.

    Args:
        lock_path: Lock file, created if needed.
        timeout: Lock acquisition timeout in seconds (None = blocking).

    Yields:
        None when lock is acquired.

    Raises:
        TimeoutError: If lock cannot be acquired within timeout.
    """
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    logger.debug("Acquiring build lock: %s", lock_path)

    fd = os.open(str(lock_path), os.O_RDWR | os.O_CREAT, 0o600)
    lock_acquired = False
    try:
        if timeout is not None:
            start = time.monotonic()
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    lock_acquired = True
                    break
                except BlockingIOError:
                    if time.monotonic() - start >= timeout:
                        raise TimeoutError(
                            f"Timeout waiting for build lock {lock_path}"
                        ) from None
                    time.sleep(0.1)
        else:
            fcntl.flock(fd, fcntl.LOCK_EX)
            lock_acquired = True

        logger.debug("Build lock acquired: %s", lock_path)
        yield
    finally:
        if lock_acquired:
            fcntl.flock(fd, fcntl.LOCK_UN)
            logger.debug("Build lock released: %s", lock_path)
        os.close(fd)


@dataclass
class BuildOutcome:
    """Result of a successful orchestrated build.

    Attributes:
        toolchain: The toolchain that ran.
        build: Subprocess execution details.
        publish: Publication details, None when no output dir was given.
    """

    toolchain: ResolvedToolchain
    build: BuildResult
    publish: PublishResult | None = None


class ExternalBuildRunner:
    """Run a package's external build.

    Args:
        manifest: The package manifest.
        policy: Decides whether the declared permissions are granted.
        toolchain_home: Per-user toolchain installation directory.
        toolchain_override: Explicit toolchain executable, checked first.
        canonical_dirs: System directories placed first on PATH.
        lock_timeout: Seconds to wait for the project lock (None = forever).
        build_timeout: Build deadline in seconds (None = none).
        build_fn: Executes the build; ``run_external_build`` by default.
    """

    def __init__(
        self,
        manifest: PackageManifest,
        policy: PermissionPolicy,
        toolchain_home: Path,
        toolchain_override: Path | None = None,
        canonical_dirs: Sequence[str] = DEFAULT_CANONICAL_PATH_DIRS,
        lock_timeout: float | None = None,
        build_timeout: int | None = None,
        build_fn: BuildFn = run_external_build,
    ) -> None:
        self.manifest = manifest
        self.policy = policy
        self.toolchain_home = toolchain_home
        self.toolchain_override = toolchain_override
        self.canonical_dirs = list(canonical_dirs)
        self.lock_timeout = lock_timeout
        self.build_timeout = build_timeout
        self.build_fn = build_fn

    @classmethod
    def from_settings(
        cls,
        manifest: PackageManifest,
        policy: PermissionPolicy,
        settings: Settings,
    ) -> ExternalBuildRunner:
        """Create a runner configured from application settings."""
        return cls(
            manifest,
            policy,
            toolchain_home=settings.toolchain_home,
            toolchain_override=settings.toolchain_path,
            canonical_dirs=settings.canonical_path_dirs,
            lock_timeout=settings.lock_timeout,
            build_timeout=settings.build_timeout,
        )

    def locator(self, environ: Mapping[str, str]) -> ToolchainLocator:
        """Build a fresh locator for ``environ``."""
        command_name = self.manifest.external.toolchain
        return ToolchainLocator(
            command_name,
            environ,
            candidates=user_install_candidates(
                command_name, environ, self.toolchain_home
            ),
            override=self.toolchain_override,
        )

    def run(
        self,
        package_root: Path,
        environ: Mapping[str, str],
        output_dir: Path | None = None,
        log_path: Path | None = None,
    ) -> BuildOutcome:
        """Run the external build and optionally publish its artifacts.

        Args:
            package_root: Package directory.
            environ: Environment inherited by the build.
            output_dir: Declared output directory to publish into.
            log_path: Capture build output here instead of inheriting streams.

        Returns:
            BuildOutcome for a successful build.

        Raises:
            PermissionDeniedError: A declared capability is not granted.
            ToolchainNotFoundError: No toolchain executable resolved.
            ExternalBuildFailedError: The build exited non-zero.
            BuildExecutionError: The build could not be started.
            PartialArtifactError: The build produced no artifacts to publish.
            TimeoutError: The project lock could not be acquired.
        """
        spec = self.manifest.external
        require_permissions(self.policy, self.manifest.permissions)
        toolchain = self.locator(environ).resolve()

        project_dir = package_root / spec.root
        if not project_dir.is_dir():
            raise BuildExecutionError(
                f"External project not found: {project_dir}",
                code="missing_project",
            )
        with build_lock(project_dir / LOCK_FILENAME, timeout=self.lock_timeout):
            result = self.build_fn(
                toolchain.path,
                spec,
                package_root,
                environ,
                canonical_dirs=self.canonical_dirs,
                log_path=log_path,
                timeout=self.build_timeout,
            )
            if not result.success:
                raise ExternalBuildFailedError(
                    result.exit_code, result.command, log_path=result.log_path
                )

            publish = None
            if output_dir is not None:
                publish = publish_artifacts(
                    project_dir / spec.output_dir,
                    output_dir,
                    spec.artifact_patterns,
                )

        logger.info("External build of %s succeeded", self.manifest.name)
        return BuildOutcome(toolchain=toolchain, build=result, publish=publish)


__all__ = [
    "LOCK_FILENAME",
    "BuildOutcome",
    "ExternalBuildRunner",
    "build_lock",
]
