"""Artifact discovery and publication.

This module handles:
- Discovering built libraries in the toolchain's output directory
- Computing checksums
- Publishing artifacts into the declared output directory
- Writing and verifying the completion marker

Publication only touches files whose content changed, and the marker is
written last with deterministic content, so the host's declared-output
tracking sees a change only when an artifact actually changed. A missing
or mismatching marker means an interrupted publish.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from ffi_prebuild.errors import PartialArtifactError
from ffi_prebuild.types import ArtifactInfo

logger = logging.getLogger(__name__)

COMPLETION_MARKER = ".ffi-prebuild-complete.json"
MARKER_VERSION = "1.0"

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB


@dataclass
class PublishResult:
    """Result of publishing artifacts.

    Attributes:
        output_dir: Declared output directory.
        marker_path: Path of the completion marker.
        artifacts: Published artifacts.
        changed: Filenames copied, replaced or removed by this publish.
    """

    output_dir: Path
    marker_path: Path
    artifacts: list[ArtifactInfo]
    changed: list[str]


def compute_file_hash(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def discover_artifacts(source_dir: Path, patterns: Sequence[str]) -> list[Path]:
    """Find files in ``source_dir`` (non-recursive) matching any pattern.

    Args:
        source_dir: Toolchain output directory.
        patterns: Glob patterns, e.g. ``*.a``.

    Returns:
        Sorted list of matching files.
    """
    if not source_dir.is_dir():
        logger.warning("Build output directory does not exist: %s", source_dir)
        return []

    found: set[Path] = set()
    for pattern in patterns:
        found.update(p for p in source_dir.glob(pattern) if p.is_file())

    artifacts = sorted(found)
    logger.info("Discovered %d artifacts in %s", len(artifacts), source_dir)
    return artifacts


def generate_marker(artifacts: list[ArtifactInfo]) -> dict[str, Any]:
    """Generate the completion marker content.

    The content depends only on the artifacts, never on time.
    """
    ordered = sorted(artifacts, key=lambda a: a.filename)
    return {
        "version": MARKER_VERSION,
        "artifacts": [asdict(a) for a in ordered],
    }


def _render_marker(marker: dict[str, Any]) -> str:
    return json.dumps(marker, indent=2, sort_keys=True) + "\n"


def _atomic_copy(source: Path, destination: Path) -> None:
    tmp = destination.with_name(f".{destination.name}.tmp")
    tmp.write_bytes(source.read_bytes())
    os.replace(tmp, destination)


def _atomic_write_text(destination: Path, content: str) -> None:
    tmp = destination.with_name(f".{destination.name}.tmp")
    tmp.write_text(content, encoding="utf-8")
    os.replace(tmp, destination)


def is_plain_filename(name: object) -> bool:
    """Return True if ``name`` names a file directly inside a directory."""
    return (
        isinstance(name, str)
        and name not in ("", ".", "..")
        and Path(name).name == name
    )


def read_marker(output_dir: Path) -> dict[str, Any] | None:
    """Read the completion marker, or None if absent or unreadable."""
    marker_path = output_dir / COMPLETION_MARKER
    try:
        with marker_path.open(encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError):
        return None
    if not isinstance(data, dict) or not isinstance(data.get("artifacts"), list):
        return None
    return data


def publish_artifacts(
    source_dir: Path,
    output_dir: Path,
    patterns: Sequence[str],
) -> PublishResult:
    """Publish built artifacts into the declared output directory.

    Args:
        source_dir: Toolchain output directory.
        output_dir: Declared output directory.
        patterns: Glob patterns of artifacts to publish.

    Returns:
        PublishResult describing what was published.

    Raises:
        PartialArtifactError: If no artifact matches ``patterns``.
    """
    output_dir.mkdir(parents=True, exist_ok=True)
    marker_path = output_dir / COMPLETION_MARKER
    previous = read_marker(output_dir)
    previous_names = {
        entry.get("filename")
        for entry in (previous or {}).get("artifacts", [])
        if isinstance(entry, dict) and isinstance(entry.get("filename"), str)
    }

    sources = discover_artifacts(source_dir, patterns)
    if not sources:
        raise PartialArtifactError(
            output_dir,
            f"no artifacts matching {', '.join(patterns)} in {source_dir}",
        )

    artifacts: list[ArtifactInfo] = []
    changed: list[str] = []
    for source in sources:
        sha256 = compute_file_hash(source)
        artifacts.append(
            ArtifactInfo(
                filename=source.name,
                size_bytes=source.stat().st_size,
                sha256=sha256,
            )
        )
        destination = output_dir / source.name
        if destination.is_file() and compute_file_hash(destination) == sha256:
            logger.debug("Artifact unchanged: %s", source.name)
            continue
        if not changed and marker_path.exists():
            # Invalidate before the first write so interruption is detectable
            marker_path.unlink()
        _atomic_copy(source, destination)
        changed.append(source.name)
        logger.debug("Published artifact: %s", destination)

    current_names = {a.filename for a in artifacts}
    for stale in sorted(previous_names - current_names):
        if not is_plain_filename(stale):
            logger.warning("Ignoring marker entry outside %s: %r", output_dir, stale)
            continue
        stale_path = output_dir / stale
        if stale_path.is_file():
            if not changed and marker_path.exists():
                marker_path.unlink()
            stale_path.unlink()
            changed.append(stale)
            logger.debug("Removed stale artifact: %s", stale_path)

    content = _render_marker(generate_marker(artifacts))
    if changed or not marker_path.exists() or marker_path.read_text(encoding="utf-8") != content:
        _atomic_write_text(marker_path, content)

    if changed:
        logger.info("Published %d changed artifact(s) to %s", len(changed), output_dir)
    else:
        logger.info("Artifacts in %s are up to date", output_dir)

    return PublishResult(
        output_dir=output_dir,
        marker_path=marker_path,
        artifacts=artifacts,
        changed=changed,
    )


def verify_published(output_dir: Path) -> list[ArtifactInfo]:
    """Verify a published output directory against its completion marker.

    Args:
        output_dir: Declared output directory.

    Returns:
        The artifacts listed in the marker.

    Raises:
        PartialArtifactError: If the marker is missing or any artifact
            is missing or differs from the recorded hash.
    """
    marker = read_marker(output_dir)
    if marker is None:
        raise PartialArtifactError(output_dir, "completion marker missing or unreadable")

    artifacts: list[ArtifactInfo] = []
    for entry in marker["artifacts"]:
        try:
            info = ArtifactInfo(**entry)
        except TypeError as e:
            raise PartialArtifactError(output_dir, f"malformed marker entry: {entry}") from e
        if not is_plain_filename(info.filename):
            raise PartialArtifactError(output_dir, f"malformed marker entry: {entry}")
        path = output_dir / info.filename
        if not path.is_file():
            raise PartialArtifactError(output_dir, f"missing artifact {info.filename}")
        if compute_file_hash(path) != info.sha256:
            raise PartialArtifactError(output_dir, f"checksum mismatch for {info.filename}")
        artifacts.append(info)

    return artifacts


__all__ = [
    "COMPLETION_MARKER",
    "HASH_CHUNK_SIZE",
    "MARKER_VERSION",
    "PublishResult",
    "compute_file_hash",
    "discover_artifacts",
    "generate_marker",
    "is_plain_filename",
    "publish_artifacts",
    "read_marker",
    "verify_published",
]
