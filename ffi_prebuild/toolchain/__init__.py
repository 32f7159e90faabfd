"""External toolchain resolution."""

from ffi_prebuild.toolchain.locator import (
    ResolvedToolchain,
    ToolchainLocator,
    user_install_candidates,
)

__all__ = ["ResolvedToolchain", "ToolchainLocator", "user_install_candidates"]
