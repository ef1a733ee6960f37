"""Cargo builder with the lockfile enforced."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass

from leo_setup.builders.base import BuildArtifact, BuildSpec
from leo_setup.errors import BuildError


@dataclass(slots=True)
class CargoBuilder:
    tool: str = "cargo"

    def command(self, spec: BuildSpec) -> tuple[str, ...]:
        flags: list[str] = []
        if spec.release:
            flags.append("--release")
        if spec.locked:
            flags.append("--locked")
        return (
            self.tool,
            f"+{spec.toolchain}",
            "build",
            *flags,
            "--bin",
            spec.binary,
            "--target-dir",
            str(spec.target_dir),
        )

    def build(self, spec: BuildSpec) -> BuildArtifact:
        command = self.command(spec)
        try:
            result = subprocess.run(
                command,
                cwd=str(spec.source),
                env={**os.environ, **spec.env},
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise BuildError(
                "Build tool not found.",
                hint="Install the Rust toolchain so `cargo` is on PATH.",
                context={"stage": "build", "tool": self.tool},
            ) from exc

        if result.returncode != 0:
            raise BuildError(
                "cargo build failed.",
                hint="The build is not retried without --locked; fix the source or lockfile.",
                context={
                    "stage": "build",
                    "returncode": str(result.returncode),
                    "stderr": result.stderr[-2000:] if result.stderr else "",
                    "command": " ".join(command),
                },
            )

        profile = "release" if spec.release else "debug"
        binary = f"{spec.binary}.exe" if spec.windows else spec.binary
        output_path = spec.target_dir / profile / binary
        if not output_path.is_file():
            raise BuildError(
                "cargo build succeeded but produced no binary.",
                context={"stage": "build", "expected": str(output_path)},
            )
        return BuildArtifact(builder="cargo", output_path=output_path, command=command)
