"""Package manifest loading.

This module locates and validates the ``ffi-prebuild`` manifest at a
package root. YAML and JSON are both accepted; a package without a
manifest gets the default external build and permissions.
"""

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ffi_prebuild.errors import ManifestError
from ffi_prebuild.package.schema import PackageManifest

logger = logging.getLogger(__name__)

MANIFEST_FILENAMES = ("ffi-prebuild.yaml", "ffi-prebuild.yml", "ffi-prebuild.json")


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
        ValueError: If the document is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def load_json(path: Path) -> dict[str, Any]:
    """Load a JSON file and return its contents as a dict.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed JSON content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        ValueError: If the document is not an object.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def find_manifest(package_root: Path) -> Path | None:
    """Return the manifest file at ``package_root``, if any."""
    for name in MANIFEST_FILENAMES:
        candidate = package_root / name
        if candidate.is_file():
            return candidate
    return None


def parse_manifest_data(data: dict[str, Any], package_root: Path) -> PackageManifest:
    """Validate manifest data, defaulting the name to the package directory.

    Raises:
        pydantic.ValidationError: If data does not match schema.
    """
    data = dict(data)
    data.setdefault("name", package_root.resolve().name)
    return PackageManifest.model_validate(data)


def load_manifest(package_root: Path) -> PackageManifest:
    """Load the package manifest from ``package_root``.

    Args:
        package_root: The package directory.

    Returns:
        Validated PackageManifest; defaults when no manifest file exists.

    Raises:
        ManifestError: If the manifest cannot be read or validated.
    """
    path = find_manifest(package_root)
    if path is None:
        logger.debug("No manifest in %s, using defaults", package_root)
        try:
            return parse_manifest_data({}, package_root)
        except ValidationError as e:
            raise ManifestError(package_root, str(e)) from e

    try:
        if path.suffix == ".json":
            data = load_json(path)
        else:
            data = load_yaml(path)
        manifest = parse_manifest_data(data, package_root)
    except (OSError, ValueError, yaml.YAMLError) as e:
        # pydantic.ValidationError and JSONDecodeError are ValueErrors
        raise ManifestError(path, str(e)) from e

    logger.debug("Loaded manifest %s for package %s", path, manifest.name)
    return manifest


__all__ = [
    "MANIFEST_FILENAMES",
    "find_manifest",
    "load_json",
    "load_manifest",
    "load_yaml",
    "parse_manifest_data",
]
