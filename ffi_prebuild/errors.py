"""Error taxonomy for ffi_prebuild.

Every error carries a stable ``code`` for programmatic handling and the
process ``exit_code`` the CLI reports for it.
"""

from __future__ import annotations

from pathlib import Path

# Stable error codes
TOOLCHAIN_NOT_FOUND = "toolchain_not_found"
EXTERNAL_BUILD_FAILED = "external_build_failed"
PERMISSION_DENIED = "permission_denied"
PARTIAL_ARTIFACT = "partial_artifact"
INVALID_MANIFEST = "invalid_manifest"
EXECUTION_ERROR = "execution_error"

# Shell convention for "command not found"
EXIT_COMMAND_NOT_FOUND = 127


class PrebuildError(Exception):
    """Base error for prebuild operations."""

    def __init__(
        self,
        message: str,
        code: str = EXECUTION_ERROR,
        exit_code: int = 1,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.exit_code = exit_code


class ToolchainNotFoundError(PrebuildError):
    """Raised when no executable toolchain could be resolved."""

    def __init__(self, command_name: str, tried: list[Path]) -> None:
        tried_str = ", ".join(str(p) for p in tried) or "(nothing)"
        super().__init__(
            f"Toolchain '{command_name}' not found (tried: {tried_str})",
            code=TOOLCHAIN_NOT_FOUND,
            exit_code=EXIT_COMMAND_NOT_FOUND,
        )
        self.command_name = command_name
        self.tried = tried


class ExternalBuildFailedError(PrebuildError):
    """Raised when the external build exits with a non-zero status.

    The subprocess status is passed through unchanged as ``exit_code``.
    """

    def __init__(
        self,
        exit_code: int,
        command: str,
        log_path: Path | None = None,
    ) -> None:
        message = f"External build failed with exit code {exit_code}: {command}"
        if log_path is not None:
            message += f" (see log: {log_path})"
        super().__init__(message, code=EXTERNAL_BUILD_FAILED, exit_code=exit_code)
        self.command = command
        self.log_path = log_path


class PermissionDeniedError(PrebuildError):
    """Raised when the host refuses a declared capability."""

    def __init__(self, capability: str, reason: str) -> None:
        super().__init__(
            f"Permission '{capability}' denied (needed to {reason}). "
            "Run 'ffi-prebuild run' manually, then rebuild the package.",
            code=PERMISSION_DENIED,
        )
        self.capability = capability
        self.reason = reason


class PartialArtifactError(PrebuildError):
    """Raised when published artifacts are incomplete or corrupted."""

    def __init__(self, output_dir: Path, detail: str) -> None:
        super().__init__(
            f"Incomplete artifacts in {output_dir}: {detail}",
            code=PARTIAL_ARTIFACT,
        )
        self.output_dir = output_dir
        self.detail = detail


class ManifestError(PrebuildError):
    """Raised when the package manifest cannot be loaded or validated."""

    def __init__(self, path: Path, detail: str) -> None:
        super().__init__(
            f"Invalid package manifest {path}: {detail}",
            code=INVALID_MANIFEST,
        )
        self.path = path


__all__ = [
    "EXECUTION_ERROR",
    "EXIT_COMMAND_NOT_FOUND",
    "EXTERNAL_BUILD_FAILED",
    "INVALID_MANIFEST",
    "PARTIAL_ARTIFACT",
    "PERMISSION_DENIED",
    "TOOLCHAIN_NOT_FOUND",
    "ExternalBuildFailedError",
    "ManifestError",
    "PartialArtifactError",
    "PermissionDeniedError",
    "PrebuildError",
    "ToolchainNotFoundError",
]
