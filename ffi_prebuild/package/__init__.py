"""Package manifest module.

This module handles:
- The external build declaration (one per package)
- Permission requests for the host sandbox
- Loading manifests from YAML/JSON
"""

from ffi_prebuild.package.io import load_manifest
from ffi_prebuild.package.schema import (
    ExternalBuildSpec,
    PackageManifest,
    PermissionRequest,
    default_permissions,
)

__all__ = [
    "ExternalBuildSpec",
    "PackageManifest",
    "PermissionRequest",
    "default_permissions",
    "load_manifest",
]
