"""Host-side execution of emitted build steps.

Executes ``BuildCommand`` values the way a host build system does: create
the declared output directory, run the step with its environment
overrides, and surface the exit status unmodified.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from ffi_prebuild.graph.generator import BuildCommand

logger = logging.getLogger(__name__)


class HostBuildStepFailed(Exception):
    """Raised when a build step exits non-zero."""

    def __init__(
        self,
        command: BuildCommand,
        exit_code: int,
        code: str = "build_step_failed",
    ) -> None:
        super().__init__(
            f"Build step '{command.display_name}' failed with exit code {exit_code}"
        )
        self.command = command
        self.exit_code = exit_code
        self.code = code


def execute_build_command(
    command: BuildCommand,
    environ: Mapping[str, str] | None = None,
    run: Callable[..., Any] = subprocess.run,
) -> int:
    """Run one build step and return its exit status.

    Args:
        command: The step to run.
        environ: Base environment (defaults to this process's environment).
        run: Subprocess runner.

    Returns:
        The step's exit status.
    """
    env = dict(os.environ if environ is None else environ)
    env.update(command.environment)
    command.output_files_directory.mkdir(parents=True, exist_ok=True)

    logger.info("Running build step: %s", command.display_name)
    result = run(
        [str(command.executable), *command.arguments],
        env=env,
        check=False,
    )
    if result.returncode != 0:
        logger.error(
            "Build step '%s' exited with %d", command.display_name, result.returncode
        )
    return result.returncode


def execute_build_commands(
    commands: Iterable[BuildCommand],
    environ: Mapping[str, str] | None = None,
    run: Callable[..., Any] = subprocess.run,
) -> None:
    """Run build steps in order, stopping at the first failure.

    Raises:
        HostBuildStepFailed: Carrying the failing step's exit status.
    """
    for command in commands:
        exit_code = execute_build_command(command, environ=environ, run=run)
        if exit_code != 0:
            raise HostBuildStepFailed(command, exit_code)


__all__ = ["HostBuildStepFailed", "execute_build_command", "execute_build_commands"]
