"""Build-graph integration.

This module handles:
- The host-facing build context and build command types
- Generating the pre-build step for a package
- Executing emitted steps host-side
"""

from ffi_prebuild.graph.generator import (
    BuildCommand,
    BuildContext,
    PrebuildCommandGenerator,
)

__all__ = ["BuildCommand", "BuildContext", "PrebuildCommandGenerator"]
