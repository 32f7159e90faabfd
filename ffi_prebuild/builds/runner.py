"""Build runner for executing the external toolchain.

This module handles:
- Composing the toolchain build command from the package manifest
- Composing the subprocess environment (PATH augmentation)
- Executing the build synchronously with subprocess
- Optionally capturing stdout/stderr to a log file
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import IO

from ffi_prebuild.config import DEFAULT_CANONICAL_PATH_DIRS
from ffi_prebuild.errors import EXECUTION_ERROR, PrebuildError
from ffi_prebuild.package.schema import ExternalBuildSpec

logger = logging.getLogger(__name__)


class BuildExecutionError(PrebuildError):
    """Raised when the external build cannot be executed.

    ``returncode`` holds the subprocess status when there is one (-1 on
    timeout); ``exit_code`` stays the CLI status inherited from
    PrebuildError.
    """

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        code: str = EXECUTION_ERROR,
    ) -> None:
        super().__init__(message, code=code)
        self.returncode = returncode


@dataclass
class BuildResult:
    """Result of an external build execution.

    Attributes:
        success: Whether the build succeeded.
        exit_code: Process exit code (negative when killed by a signal).
        command: The command that was executed.
        cwd: Working directory of the build.
        started_at: Build start time.
        finished_at: Build finish time.
        log_path: Path to the build log file, if output was captured.
        error_message: Error message if build failed.
    """

    success: bool
    exit_code: int
    command: str
    cwd: Path
    started_at: datetime
    finished_at: datetime
    log_path: Path | None = None
    error_message: str | None = None


def compose_build_command(toolchain_path: Path, spec: ExternalBuildSpec) -> list[str]:
    """Compose the toolchain build command.

    Args:
        toolchain_path: Resolved toolchain executable.
        spec: External build declaration.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    return [str(toolchain_path), *spec.command]


def compose_search_path(
    toolchain_dir: Path,
    inherited_path: str,
    canonical_dirs: Sequence[str] = DEFAULT_CANONICAL_PATH_DIRS,
) -> str:
    """Compose PATH: canonical dirs, then the toolchain dir, then inherited entries.

    Duplicates keep their first position.
    """
    entries = [*canonical_dirs, str(toolchain_dir), *inherited_path.split(os.pathsep)]
    seen: set[str] = set()
    ordered: list[str] = []
    for entry in entries:
        if entry and entry not in seen:
            seen.add(entry)
            ordered.append(entry)
    return os.pathsep.join(ordered)


def compose_build_env(
    toolchain_path: Path,
    environ: Mapping[str, str],
    canonical_dirs: Sequence[str] = DEFAULT_CANONICAL_PATH_DIRS,
) -> dict[str, str]:
    """Compose the subprocess environment for the build.

    Args:
        toolchain_path: Resolved toolchain executable.
        environ: Inherited environment.
        canonical_dirs: System directories placed first on PATH.

    Returns:
        A new environment dict; ``environ`` is not modified.
    """
    env = dict(environ)
    env["PATH"] = compose_search_path(
        toolchain_path.parent, environ.get("PATH", ""), canonical_dirs
    )
    return env


def _write_log_header(log_file: IO[str], cmd_str: str, cwd: Path, started_at: datetime) -> None:
    log_file.write(f"# Command: {cmd_str}\n")
    log_file.write(f"# Started: {started_at.isoformat()}\n")
    log_file.write(f"# CWD: {cwd}\n")
    log_file.write("# " + "=" * 70 + "\n\n")
    log_file.flush()


def run_external_build(
    toolchain_path: Path,
    spec: ExternalBuildSpec,
    package_root: Path,
    environ: Mapping[str, str],
    canonical_dirs: Sequence[str] = DEFAULT_CANONICAL_PATH_DIRS,
    log_path: Path | None = None,
    timeout: int | None = None,
) -> BuildResult:
    """Execute the external build and block until it exits.

    Args:
        toolchain_path: Resolved toolchain executable.
        spec: External build declaration.
        package_root: Package directory containing the external project.
        environ: Inherited environment for the subprocess.
        canonical_dirs: System directories placed first on PATH.
        log_path: Capture stdout/stderr here; inherit the caller's streams if None.
        timeout: Build timeout in seconds (None = no timeout).

    Returns:
        BuildResult with execution details. A non-zero exit is reported,
        not raised.

    Raises:
        BuildExecutionError: If the build cannot be started or times out.
    """
    cwd = package_root / spec.root
    if not cwd.is_dir():
        raise BuildExecutionError(
            f"External project not found: {cwd}",
            code="missing_project",
        )

    cmd = compose_build_command(toolchain_path, spec)
    env = compose_build_env(toolchain_path, environ, canonical_dirs)

    cmd_str = shlex.join(cmd)
    logger.info("Executing external build: %s", cmd_str)
    logger.info("Working directory: %s", cwd)

    started_at = datetime.now(timezone.utc)
    error_message: str | None = None

    try:
        if log_path is not None:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with log_path.open("w") as log_file:
                _write_log_header(log_file, cmd_str, cwd, started_at)
                result = subprocess.run(
                    cmd,
                    cwd=cwd,
                    env=env,
                    stdout=log_file,
                    stderr=subprocess.STDOUT,
                    timeout=timeout,
                    check=False,
                )
        else:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                env=env,
                timeout=timeout,
                check=False,
            )
    except subprocess.TimeoutExpired as e:
        error_message = f"External build timed out after {timeout} seconds"
        logger.error(error_message)
        if log_path is not None:
            with log_path.open("a") as log_file:
                log_file.write(f"\n# TIMEOUT after {timeout} seconds\n")
        raise BuildExecutionError(
            error_message,
            returncode=-1,
            code="build_timeout",
        ) from e
    except OSError as e:
        error_message = f"Failed to execute external build: {e}"
        logger.error(error_message)
        raise BuildExecutionError(error_message) from e

    finished_at = datetime.now(timezone.utc)
    exit_code = result.returncode
    success = exit_code == 0
    if not success:
        error_message = f"External build failed with exit code {exit_code}"
        logger.error("%s: %s", error_message, cmd_str)

    if log_path is not None:
        with log_path.open("a") as log_file:
            log_file.write(f"\n# Finished: {finished_at.isoformat()}\n")
            log_file.write(f"# Exit code: {exit_code}\n")
            duration = (finished_at - started_at).total_seconds()
            log_file.write(f"# Duration: {duration:.1f}s\n")

    return BuildResult(
        success=success,
        exit_code=exit_code,
        command=cmd_str,
        cwd=cwd,
        started_at=started_at,
        finished_at=finished_at,
        log_path=log_path,
        error_message=error_message,
    )


__all__ = [
    "BuildExecutionError",
    "BuildResult",
    "compose_build_command",
    "compose_build_env",
    "compose_search_path",
    "run_external_build",
]
