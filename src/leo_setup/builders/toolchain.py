"""Rust toolchain acquisition through rustup."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field

from leo_setup.errors import ToolchainError


@dataclass(slots=True)
class RustupToolchain:
    tool: str = "rustup"
    profile: str = "minimal"
    installed: set[str] = field(default_factory=set)

    def ensure(self, version: str) -> None:
        if version in self.installed:
            return
        command = [
            self.tool,
            "toolchain",
            "install",
            version,
            "--profile",
            self.profile,
            "--no-self-update",
        ]
        try:
            result = subprocess.run(command, capture_output=True, text=True, check=False)
        except FileNotFoundError as exc:
            raise ToolchainError(
                "rustup not found.",
                hint="Install rustup before running leo-setup.",
                context={"stage": "toolchain", "toolchain": version},
            ) from exc
        if result.returncode != 0:
            raise ToolchainError(
                f"Unable to install Rust toolchain `{version}`.",
                context={
                    "stage": "toolchain",
                    "toolchain": version,
                    "stderr": result.stderr.strip()[-2000:],
                },
            )
        self.installed.add(version)
