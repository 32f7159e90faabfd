"""Build orchestration module.

This module handles:
- Running the external toolchain
- Locking the external project against concurrent builds
- Publishing artifacts with a completion marker
"""

from ffi_prebuild.builds.service import BuildOutcome, ExternalBuildRunner

__all__ = ["BuildOutcome", "ExternalBuildRunner"]
