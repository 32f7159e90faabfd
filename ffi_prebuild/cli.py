"""Thin CLI wrapper for ffi_prebuild.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules; this is the only place
that reads settings and the process environment.
"""

import json
import logging
import os
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler

from ffi_prebuild import __version__
from ffi_prebuild.config import get_settings, print_settings_json
from ffi_prebuild.errors import (
    ExternalBuildFailedError,
    PartialArtifactError,
    PrebuildError,
    ToolchainNotFoundError,
)
from ffi_prebuild.types import Capability

app = typer.Typer(
    name="ffi-prebuild",
    help="FFI Prebuild - build native libraries ahead of the package build",
    no_args_is_help=True,
)
console = Console()


def configure_logging(level: str) -> None:
    """Route log records to stderr through rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def exit_status(code: int) -> int:
    """Map a subprocess return code to a process exit status.

    Signal terminations (negative codes) follow the shell's 128 + N rule.
    """
    if code < 0:
        return 128 + abs(code)
    return code


def _fail(message: str, code: int = 1) -> NoReturn:
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(code=code)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"ffi-prebuild version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """FFI Prebuild - build native libraries ahead of the package build."""
    configure_logging(get_settings().log_level)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        typer.echo(print_settings_json(settings))
        return

    override = str(settings.toolchain_path) if settings.toolchain_path else "(none)"
    grants = ", ".join(c.value for c in settings.granted_capabilities) or "(none)"
    build_timeout = settings.build_timeout or "(no deadline)"
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Toolchain:[/bold]")
    console.print(f"  Override path:       {override}")
    console.print(f"  Per-user home:       {settings.toolchain_home}")
    console.print(f"  Canonical PATH dirs: {', '.join(settings.canonical_path_dirs)}")
    console.print()
    console.print("[bold]Sandbox:[/bold]")
    console.print(f"  Granted capabilities: {grants}")
    console.print()
    console.print("[bold]Operational:[/bold]")
    console.print(f"  Log level:           {settings.log_level}")
    console.print(f"  Lock timeout:        {settings.lock_timeout}")
    console.print(f"  Build timeout:       {build_timeout}")


@app.command()
def run(
    package_root: Annotated[
        Path,
        typer.Option("--package-root", "-C", help="Package directory"),
    ] = Path("."),
    output_dir: Annotated[
        Path | None,
        typer.Option("--output-dir", "-o", help="Publish artifacts into this directory"),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option("--log-file", help="Capture build output to this file"),
    ] = None,
    grants: Annotated[
        list[Capability] | None,
        typer.Option(
            "--grant",
            help="Restrict to capabilities granted by a sandbox (can be repeated)",
        ),
    ] = None,
) -> None:
    """Build the package's native library now.

    Exits with the toolchain's own exit status on failure.
    """
    from ffi_prebuild.builds.service import ExternalBuildRunner
    from ffi_prebuild.package.io import load_manifest
    from ffi_prebuild.policy import GrantedCapabilitiesPolicy, OperatorConsentPolicy

    settings = get_settings()
    package_root = package_root.resolve()

    try:
        manifest = load_manifest(package_root)
    except PrebuildError as e:
        _fail(e.message, e.exit_code)

    if not grants:
        # Invoking the command by hand is the operator's consent
        for request in manifest.permissions:
            console.print(f"[dim]Using {request.describe()}[/dim]")
        policy = OperatorConsentPolicy()
    else:
        policy = GrantedCapabilitiesPolicy(grants)

    runner = ExternalBuildRunner.from_settings(manifest, policy, settings)
    try:
        outcome = runner.run(
            package_root,
            dict(os.environ),
            output_dir=output_dir.resolve() if output_dir else None,
            log_path=log_file,
        )
    except ExternalBuildFailedError as e:
        _fail(e.message, exit_status(e.exit_code))
    except ToolchainNotFoundError as e:
        console.print(f"[red]{e.message}[/red]")
        console.print(
            "Install the toolchain or set FFI_PREBUILD_TOOLCHAIN_PATH to its executable."
        )
        raise typer.Exit(code=e.exit_code) from None
    except PrebuildError as e:
        _fail(e.message, e.exit_code)
    except TimeoutError as e:
        _fail(str(e))

    console.print(
        f"[green]Built {manifest.name} with {outcome.toolchain.path}[/green]"
    )
    if outcome.publish is not None:
        for artifact in outcome.publish.artifacts:
            console.print(f"  {artifact.filename} ({artifact.size_bytes} bytes)")
        console.print(f"Published to {outcome.publish.output_dir}")


@app.command()
def plan(
    package_root: Annotated[
        Path,
        typer.Option("--package-root", "-C", help="Package directory"),
    ] = Path("."),
    work_dir: Annotated[
        Path | None,
        typer.Option("--work-dir", help="Plugin work directory"),
    ] = None,
    target: Annotated[
        str,
        typer.Option("--target", "-t", help="Consuming target name"),
    ] = "",
    grants: Annotated[
        list[Capability] | None,
        typer.Option("--grant", help="Capabilities granted by the host (can be repeated)"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the pre-build step the build graph would run."""
    from ffi_prebuild.graph.generator import BuildContext, PrebuildCommandGenerator

    settings = get_settings()
    package_root = package_root.resolve()
    context = BuildContext(
        package_root=package_root,
        work_dir=(work_dir or package_root / ".build" / "ffi-prebuild").resolve(),
        target_name=target or package_root.name,
        granted_capabilities=frozenset(
            grants or settings.granted_capabilities
        ),
    )

    try:
        commands = PrebuildCommandGenerator().create_build_commands(context)
    except PrebuildError as e:
        _fail(e.message, e.exit_code)

    if json_output:
        typer.echo(json.dumps([c.to_dict() for c in commands], indent=2))
        return

    for command in commands:
        console.print(f"[bold]{command.display_name}[/bold]")
        console.print(f"  Executable: {command.executable}")
        console.print(f"  Arguments:  {' '.join(command.arguments)}")
        console.print(f"  Output dir: {command.output_files_directory}")


@app.command()
def permissions(
    package_root: Annotated[
        Path,
        typer.Option("--package-root", "-C", help="Package directory"),
    ] = Path("."),
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show the capabilities the external build requires."""
    from ffi_prebuild.package.io import load_manifest

    try:
        manifest = load_manifest(package_root.resolve())
    except PrebuildError as e:
        _fail(e.message, e.exit_code)

    if json_output:
        output = [p.model_dump(mode="json", exclude_none=True) for p in manifest.permissions]
        typer.echo(json.dumps(output, indent=2))
        return

    console.print(f"[bold]{manifest.name} requires:[/bold]")
    for request in manifest.permissions:
        console.print(f"  - {request.describe()}")


@app.command()
def verify(
    output_dir: Annotated[
        Path,
        typer.Argument(help="Published output directory to check"),
    ],
) -> None:
    """Check that published artifacts are complete."""
    from ffi_prebuild.builds.artifacts import verify_published

    try:
        artifacts = verify_published(output_dir)
    except PartialArtifactError as e:
        console.print(f"[red]{e.message}[/red]")
        console.print("Run 'ffi-prebuild run' again to rebuild the artifacts.")
        raise typer.Exit(code=e.exit_code) from None

    console.print(f"[green]{len(artifacts)} artifact(s) complete in {output_dir}[/green]")
    for artifact in artifacts:
        console.print(f"  {artifact.filename} sha256:{artifact.sha256[:16]}")


if __name__ == "__main__":
    app()
