"""Allow ``python -m ffi_prebuild``."""

from ffi_prebuild.cli import app

app(prog_name="ffi-prebuild")
