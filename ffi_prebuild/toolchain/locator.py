"""Toolchain executable resolution.

Resolution order:
1. Explicit override path
2. Candidate paths (the per-user installation directory)
3. Bare command name looked up on the given environment's PATH

Nothing is cached; a locator reads only the mapping and paths it was
constructed with, so every call reflects the current installation.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from ffi_prebuild.errors import ToolchainNotFoundError
from ffi_prebuild.types import ToolchainSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedToolchain:
    """A toolchain executable and where it was found."""

    path: Path
    source: ToolchainSource

    @property
    def install_dir(self) -> Path:
        """Directory containing the executable."""
        return self.path.parent


def is_executable_file(path: Path) -> bool:
    """Return True if ``path`` is an existing executable regular file."""
    return path.is_file() and os.access(path, os.X_OK)


def user_install_candidates(
    command_name: str,
    environ: Mapping[str, str],
    toolchain_home: Path,
) -> list[Path]:
    """Return per-user installation candidates for ``command_name``.

    ``CARGO_HOME`` wins over ``toolchain_home`` when set.
    """
    candidates: list[Path] = []
    cargo_home = environ.get("CARGO_HOME")
    if cargo_home:
        candidates.append(Path(cargo_home) / "bin" / command_name)
    candidate = toolchain_home / "bin" / command_name
    if candidate not in candidates:
        candidates.append(candidate)
    return candidates


class ToolchainLocator:
    """Resolve a toolchain executable from explicit inputs.

    Args:
        command_name: Bare command name, e.g. ``cargo``.
        environ: Environment mapping; only its ``PATH`` is consulted.
        candidates: Paths checked after the override, in order.
        override: Explicit executable path, checked first.
    """

    def __init__(
        self,
        command_name: str,
        environ: Mapping[str, str],
        candidates: Sequence[Path] = (),
        override: Path | None = None,
    ) -> None:
        self.command_name = command_name
        self.environ = environ
        self.candidates = list(candidates)
        self.override = override

    def resolve(self) -> ResolvedToolchain:
        """Resolve the toolchain executable.

        Returns:
            ResolvedToolchain pointing at an existing executable.

        Raises:
            ToolchainNotFoundError: If no candidate is executable.
        """
        tried: list[Path] = []

        if self.override is not None:
            tried.append(self.override)
            if is_executable_file(self.override):
                return self._found(self.override, ToolchainSource.OVERRIDE)
            logger.warning(
                "Toolchain override %s is not an executable file, ignoring",
                self.override,
            )

        for candidate in self.candidates:
            tried.append(candidate)
            if is_executable_file(candidate):
                return self._found(candidate, ToolchainSource.USER_INSTALL)

        search_path = self.environ.get("PATH", "")
        found = shutil.which(self.command_name, path=search_path) if search_path else None
        if found is not None:
            return self._found(Path(found), ToolchainSource.SEARCH_PATH)
        tried.extend(
            Path(entry) / self.command_name
            for entry in search_path.split(os.pathsep)
            if entry
        )

        logger.error("Toolchain '%s' not found", self.command_name)
        raise ToolchainNotFoundError(self.command_name, tried)

    def _found(self, path: Path, source: ToolchainSource) -> ResolvedToolchain:
        # The build runs with the external root as its working directory
        path = path.absolute()
        logger.info("Using toolchain %s (%s)", path, source.value)
        return ResolvedToolchain(path=path, source=source)


__all__ = [
    "ResolvedToolchain",
    "ToolchainLocator",
    "is_executable_file",
    "user_install_candidates",
]
