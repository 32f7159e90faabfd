"""Tests for toolchain/locator.py module."""

from pathlib import Path

import pytest

from ffi_prebuild.errors import ToolchainNotFoundError
from ffi_prebuild.toolchain.locator import (
    ToolchainLocator,
    is_executable_file,
    user_install_candidates,
)
from ffi_prebuild.types import ToolchainSource


class TestUserInstallCandidates:
    """Tests for user_install_candidates function."""

    def test_home_bin(self, tmp_path):
        """Should look in <home>/bin."""
        candidates = user_install_candidates("cargo", {}, tmp_path / ".cargo")
        assert candidates == [tmp_path / ".cargo" / "bin" / "cargo"]

    def test_cargo_home_first(self, tmp_path):
        """CARGO_HOME is checked before the default home."""
        candidates = user_install_candidates(
            "cargo", {"CARGO_HOME": str(tmp_path / "ch")}, tmp_path / ".cargo"
        )
        assert candidates == [
            tmp_path / "ch" / "bin" / "cargo",
            tmp_path / ".cargo" / "bin" / "cargo",
        ]


class TestToolchainLocator:
    """Tests for ToolchainLocator.resolve."""

    def test_override_wins(self, tmp_path, make_toolchain):
        """An executable override is used first."""
        override = make_toolchain(directory=tmp_path / "override")
        user = make_toolchain(directory=tmp_path / "home" / "bin")

        resolved = ToolchainLocator(
            "cargo", {"PATH": ""}, candidates=[user], override=override
        ).resolve()

        assert resolved.path == override
        assert resolved.source == ToolchainSource.OVERRIDE
        assert resolved.install_dir == override.parent

    def test_missing_override_falls_through(self, tmp_path, make_toolchain):
        """A missing override is skipped, not trusted."""
        user = make_toolchain(directory=tmp_path / "home" / "bin")

        resolved = ToolchainLocator(
            "cargo",
            {"PATH": ""},
            candidates=[user],
            override=tmp_path / "missing" / "cargo",
        ).resolve()

        assert resolved.path == user
        assert resolved.source == ToolchainSource.USER_INSTALL

    def test_search_path(self, tmp_path, make_toolchain):
        """Falls back to the bare name on PATH."""
        bin_dir = tmp_path / "bin"
        tool = make_toolchain(directory=bin_dir)

        resolved = ToolchainLocator(
            "cargo", {"PATH": str(bin_dir)}, candidates=[tmp_path / "none" / "cargo"]
        ).resolve()

        assert resolved.path == tool
        assert resolved.source == ToolchainSource.SEARCH_PATH

    def test_non_executable_candidate_skipped(self, tmp_path):
        """A file without the executable bit does not count."""
        plain = tmp_path / "home" / "bin" / "cargo"
        plain.parent.mkdir(parents=True)
        plain.write_text("not a program")

        assert not is_executable_file(plain)
        with pytest.raises(ToolchainNotFoundError):
            ToolchainLocator("cargo", {"PATH": ""}, candidates=[plain]).resolve()

    def test_nothing_found(self, tmp_path):
        """No override, no user install, not on PATH: typed error."""
        empty = tmp_path / "empty"
        empty.mkdir()

        with pytest.raises(ToolchainNotFoundError) as exc_info:
            ToolchainLocator(
                "cargo",
                {"PATH": str(empty)},
                candidates=[tmp_path / "home" / "bin" / "cargo"],
                override=tmp_path / "override" / "cargo",
            ).resolve()

        error = exc_info.value
        assert error.code == "toolchain_not_found"
        assert error.exit_code == 127
        assert tmp_path / "override" / "cargo" in error.tried
        assert tmp_path / "home" / "bin" / "cargo" in error.tried
        assert empty / "cargo" in error.tried

    def test_not_cached(self, tmp_path, make_toolchain):
        """Each resolve() reflects the current filesystem."""
        user = tmp_path / "home" / "bin" / "cargo"
        locator = ToolchainLocator("cargo", {"PATH": ""}, candidates=[user])

        with pytest.raises(ToolchainNotFoundError):
            locator.resolve()

        make_toolchain(directory=user.parent)
        assert locator.resolve().path == user

    def test_ignores_process_environment(self, tmp_path, monkeypatch, make_toolchain):
        """Only the given mapping's PATH is consulted."""
        bin_dir = tmp_path / "bin"
        make_toolchain(directory=bin_dir)
        monkeypatch.setenv("PATH", str(bin_dir))

        with pytest.raises(ToolchainNotFoundError):
            ToolchainLocator("cargo", {}, candidates=[]).resolve()

    def test_relative_override_made_absolute(self, tmp_path, monkeypatch, make_toolchain):
        """A relative override resolves against the caller's directory."""
        make_toolchain(directory=tmp_path / "tools")
        monkeypatch.chdir(tmp_path)

        resolved = ToolchainLocator(
            "cargo", {"PATH": ""}, override=Path("tools/cargo")
        ).resolve()

        assert resolved.path.is_absolute()
        assert resolved.path == tmp_path / "tools" / "cargo"
        assert resolved.install_dir == tmp_path / "tools"

    def test_relative_search_path_entry_made_absolute(self, tmp_path, monkeypatch, make_toolchain):
        """A relative PATH entry yields an absolute executable path."""
        make_toolchain(directory=tmp_path / "tools")
        monkeypatch.chdir(tmp_path)

        resolved = ToolchainLocator("cargo", {"PATH": "tools"}).resolve()

        assert resolved.path == tmp_path / "tools" / "cargo"
        assert resolved.source == ToolchainSource.SEARCH_PATH
