"""Typed interfaces for the build tool and its toolchain."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol


@dataclass(frozen=True, slots=True)
class BuildSpec:
    source: Path
    toolchain: str
    target_dir: Path
    binary: str = "leo"
    locked: bool = True
    release: bool = True
    windows: bool = False
    env: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    builder: str
    output_path: Path
    command: tuple[str, ...] = ()


class Builder(Protocol):
    def build(self, spec: BuildSpec) -> BuildArtifact:
        """Compile source and return the produced binary."""


class Toolchain(Protocol):
    def ensure(self, version: str) -> None:
        """Make *version* of the compiler toolchain available."""
