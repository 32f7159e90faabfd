"""Shared fixtures: fake toolchains and package layouts."""

import os
import stat
from collections.abc import Callable
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]


def write_executable(path: Path, body: str) -> Path:
    """Write a ``/bin/sh`` script and mark it executable."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("#!/bin/sh\n" + body + "\n")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def make_toolchain(tmp_path) -> Callable[..., Path]:
    """Factory for fake toolchain executables.

    The script runs with the external project root as its working
    directory, like the real toolchain.
    """

    def _make(body: str = "exit 0", name: str = "cargo", directory: Path | None = None) -> Path:
        directory = directory or tmp_path / "toolchain" / "bin"
        return write_executable(directory / name, body)

    return _make


@pytest.fixture
def fake_lib_toolchain(make_toolchain) -> Path:
    """Toolchain that writes target/release/libfake.a and exits 0."""
    return make_toolchain(
        "mkdir -p target/release\nprintf 'fake-archive' > target/release/libfake.a\nexit 0"
    )


@pytest.fixture
def package_root(tmp_path) -> Path:
    """A package directory with an empty external project at ``ffi/``."""
    root = tmp_path / "pkg"
    (root / "ffi").mkdir(parents=True)
    return root


@pytest.fixture
def isolated_env(tmp_path, monkeypatch) -> dict[str, str]:
    """Point settings away from the real per-user toolchain."""
    home = tmp_path / "no-toolchain-home"
    monkeypatch.setenv("FFI_PREBUILD_TOOLCHAIN_HOME", str(home))
    monkeypatch.delenv("FFI_PREBUILD_TOOLCHAIN_PATH", raising=False)
    monkeypatch.delenv("FFI_PREBUILD_GRANTED_CAPABILITIES", raising=False)
    monkeypatch.delenv("CARGO_HOME", raising=False)
    return dict(os.environ)
