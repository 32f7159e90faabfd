"""FFI Prebuild - build-graph orchestration for natively compiled libraries.

This package runs an external toolchain (cargo by default) as a pre-build
step of a host package build and publishes the produced artifacts where the
downstream compile/link step consumes them.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
