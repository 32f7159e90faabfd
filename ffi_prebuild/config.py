"""Configuration settings for ffi_prebuild.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ffi_prebuild.types import Capability

DEFAULT_CANONICAL_PATH_DIRS = ["/usr/bin", "/bin", "/usr/sbin", "/sbin"]


def _default_toolchain_home() -> Path:
    """Return the default per-user toolchain installation directory."""
    return Path.home() / ".cargo"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the FFI_PREBUILD_
    prefix. CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="FFI_PREBUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Toolchain resolution
    toolchain_path: Path | None = Field(
        default=None,
        description="Explicit path to the toolchain executable",
    )
    toolchain_home: Path = Field(
        default_factory=_default_toolchain_home,
        description="Per-user toolchain installation directory (bin/ is searched)",
    )
    canonical_path_dirs: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CANONICAL_PATH_DIRS),
        description="System directories prepended to PATH for the build",
    )

    # Host sandbox grants used when planning graph steps
    granted_capabilities: list[Capability] = Field(
        default_factory=list,
        description="Capabilities the host sandbox grants to the pre-build step",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Timeouts (in seconds)
    lock_timeout: float | None = Field(
        default=600.0,
        gt=0,
        description="Timeout for acquiring the external project lock (None = wait forever)",
    )
    build_timeout: int | None = Field(
        default=None,
        ge=1,
        description="Timeout for the external build (None = no deadline)",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = [
    "DEFAULT_CANONICAL_PATH_DIRS",
    "Settings",
    "get_settings",
    "print_settings_json",
]
