"""Tests for package/schema.py and package/io.py.

Tests manifest validation, defaults, and YAML/JSON loading.
"""

import json

import pytest
from pydantic import ValidationError

from ffi_prebuild.errors import ManifestError
from ffi_prebuild.package.io import find_manifest, load_manifest
from ffi_prebuild.package.schema import (
    ExternalBuildSpec,
    PackageManifest,
    PermissionRequest,
    default_permissions,
)
from ffi_prebuild.types import Capability


class TestExternalBuildSpec:
    """Tests for ExternalBuildSpec model."""

    def test_defaults(self):
        """Should default to a cargo release build."""
        spec = ExternalBuildSpec()
        assert spec.root == "ffi"
        assert spec.toolchain == "cargo"
        assert spec.command == ("build", "--release")
        assert spec.output_dir == "target/release"
        assert spec.artifact_patterns == ("*.a",)

    def test_rejects_absolute_root(self):
        """Root must stay inside the package."""
        with pytest.raises(ValidationError):
            ExternalBuildSpec(root="/tmp/elsewhere")

    def test_rejects_parent_traversal(self):
        """Paths must not escape with '..'."""
        with pytest.raises(ValidationError):
            ExternalBuildSpec(root="../sibling")
        with pytest.raises(ValidationError):
            ExternalBuildSpec(output_dir="target/../../out")

    def test_rejects_toolchain_path(self):
        """Toolchain must be a bare command name."""
        with pytest.raises(ValidationError):
            ExternalBuildSpec(toolchain="/usr/bin/cargo")

    def test_rejects_unknown_fields(self):
        """Unknown fields are an error."""
        with pytest.raises(ValidationError):
            ExternalBuildSpec(features=["x"])

    def test_is_immutable(self):
        """Specs are frozen."""
        spec = ExternalBuildSpec()
        with pytest.raises(ValidationError):
            spec.root = "other"


class TestPermissionRequest:
    """Tests for PermissionRequest model."""

    def test_default_permissions(self):
        """Should request network on 80/443 and package writes."""
        network, write = default_permissions()
        assert network.capability == Capability.NETWORK
        assert network.scope == "all"
        assert network.ports == (80, 443)
        assert network.reason
        assert write.capability == Capability.PACKAGE_WRITE
        assert write.reason

    def test_ports_only_for_network(self):
        """Package-write requests cannot carry ports."""
        with pytest.raises(ValidationError):
            PermissionRequest(capability="package-write", reason="x", ports=[80])

    def test_port_range(self):
        """Ports must be valid TCP ports."""
        with pytest.raises(ValidationError):
            PermissionRequest(capability="network", reason="x", ports=[70000])

    def test_reason_required(self):
        """An empty justification is rejected."""
        with pytest.raises(ValidationError):
            PermissionRequest(capability="network", reason="")

    def test_describe(self):
        """describe() mentions ports and reason."""
        network, write = default_permissions()
        assert "80, 443" in network.describe()
        assert "fetch" in network.describe()
        assert "package directory" in write.describe()


class TestPackageManifest:
    """Tests for PackageManifest model."""

    def test_single_external_build(self):
        """Only one external build may be declared."""
        with pytest.raises(ValidationError):
            PackageManifest.model_validate(
                {"name": "x", "external": {}, "externals": [{}]}
            )

    def test_duplicate_permission_rejected(self):
        """Each capability may be requested once."""
        with pytest.raises(ValidationError):
            PackageManifest(
                name="x",
                permissions=[
                    {"capability": "network", "reason": "a"},
                    {"capability": "network", "reason": "b"},
                ],
            )


class TestLoadManifest:
    """Tests for load_manifest function."""

    def test_defaults_without_file(self, tmp_path):
        """Missing manifest yields defaults named after the directory."""
        root = tmp_path / "jj-swift"
        root.mkdir()

        manifest = load_manifest(root)

        assert manifest.name == "jj-swift"
        assert manifest.external == ExternalBuildSpec()
        assert len(manifest.permissions) == 2

    def test_load_yaml(self, tmp_path):
        """Should load a YAML manifest."""
        (tmp_path / "ffi-prebuild.yaml").write_text(
            "name: jj-swift\n"
            "external:\n"
            "  root: jj-ffi\n"
            "  artifact_patterns: ['libjj_ffi.a']\n"
        )

        manifest = load_manifest(tmp_path)

        assert manifest.name == "jj-swift"
        assert manifest.external.root == "jj-ffi"
        assert manifest.external.artifact_patterns == ("libjj_ffi.a",)
        assert manifest.external.command == ("build", "--release")

    def test_load_json(self, tmp_path):
        """Should load a JSON manifest."""
        (tmp_path / "ffi-prebuild.json").write_text(
            json.dumps(
                {
                    "external": {"root": "native"},
                    "permissions": [
                        {"capability": "package-write", "reason": "write artifacts"}
                    ],
                }
            )
        )

        manifest = load_manifest(tmp_path)

        assert manifest.external.root == "native"
        assert [p.capability for p in manifest.permissions] == [
            Capability.PACKAGE_WRITE
        ]

    def test_empty_yaml_uses_defaults(self, tmp_path):
        """An empty YAML file means all defaults."""
        (tmp_path / "ffi-prebuild.yml").write_text("")
        manifest = load_manifest(tmp_path)
        assert manifest.external.root == "ffi"

    def test_invalid_manifest_raises(self, tmp_path):
        """Schema violations raise ManifestError."""
        (tmp_path / "ffi-prebuild.yaml").write_text("external:\n  root: /abs\n")
        with pytest.raises(ManifestError) as exc_info:
            load_manifest(tmp_path)
        assert exc_info.value.code == "invalid_manifest"

    def test_non_mapping_raises(self, tmp_path):
        """A YAML list is not a manifest."""
        (tmp_path / "ffi-prebuild.yaml").write_text("- a\n- b\n")
        with pytest.raises(ManifestError):
            load_manifest(tmp_path)

    def test_find_manifest_prefers_yaml(self, tmp_path):
        """YAML is found before JSON."""
        (tmp_path / "ffi-prebuild.json").write_text("{}")
        (tmp_path / "ffi-prebuild.yaml").write_text("{}")
        assert find_manifest(tmp_path) == tmp_path / "ffi-prebuild.yaml"
