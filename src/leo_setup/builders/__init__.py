"""Build tool and toolchain adapters."""

from .base import Builder, BuildArtifact, BuildSpec, Toolchain
from .cargo import CargoBuilder
from .install import install_artifact
from .toolchain import RustupToolchain

__all__ = [
    "BuildArtifact",
    "BuildSpec",
    "Builder",
    "CargoBuilder",
    "RustupToolchain",
    "Toolchain",
    "install_artifact",
]
