"""Git remote access pinned to exact release tags."""

from __future__ import annotations

import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from leo_setup.errors import CloneError


@dataclass(frozen=True, slots=True)
class CloneResult:
    path: Path
    commit_sha: str
    tags: tuple[str, ...]


class SourceRemote(Protocol):
    def tag_exists(self, repo: str, tag: str) -> bool:
        """Return whether *repo* advertises ``refs/tags/{tag}``."""

    def list_tags(self, repo: str, *, limit: int = 10) -> list[str]:
        """Return the most recent tag names advertised by *repo*."""

    def shallow_clone(self, repo: str, tag: str, dest: Path, *, depth: int = 1) -> CloneResult:
        """Clone exactly *tag* into *dest* and report the checked-out commit."""

    def verify_tag(self, checkout: Path, tag: str) -> bool:
        """Return whether *tag* carries a valid signature."""


@dataclass(slots=True)
class GitRemote:
    tool: str = "git"

    def tag_exists(self, repo: str, tag: str) -> bool:
        output = self._run(["ls-remote", "--tags", repo, f"refs/tags/{tag}"], operation="tag_exists")
        return any(line.split()[-1] == f"refs/tags/{tag}" for line in output.splitlines() if line.strip())

    def list_tags(self, repo: str, *, limit: int = 10) -> list[str]:
        output = self._run(
            ["ls-remote", "--tags", "--refs", "--sort=version:refname", repo],
            operation="list_tags",
        )
        tags = [
            line.split()[-1].removeprefix("refs/tags/")
            for line in output.splitlines()
            if line.strip()
        ]
        return tags[-limit:] if limit > 0 else tags

    def shallow_clone(self, repo: str, tag: str, dest: Path, *, depth: int = 1) -> CloneResult:
        dest = Path(dest)
        if dest.exists():
            shutil.rmtree(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        self._run(
            [
                "-c",
                "advice.detachedHead=false",
                "clone",
                "--quiet",
                "--depth",
                str(depth),
                "--branch",
                tag,
                repo,
                str(dest),
            ],
            operation="shallow_clone",
        )
        commit_sha = self._run(["rev-parse", "HEAD"], cwd=dest, operation="shallow_clone")
        tags = self._run(["tag", "--points-at", "HEAD"], cwd=dest, operation="shallow_clone")
        return CloneResult(
            path=dest,
            commit_sha=commit_sha,
            tags=tuple(line.strip() for line in tags.splitlines() if line.strip()),
        )

    def verify_tag(self, checkout: Path, tag: str) -> bool:
        completed = subprocess.run(
            [self.tool, "verify-tag", tag],
            cwd=checkout,
            check=False,
            text=True,
            capture_output=True,
        )
        return completed.returncode == 0

    def _run(self, argv: list[str], *, operation: str, cwd: Path | None = None) -> str:
        command = [self.tool, *argv]
        try:
            completed = subprocess.run(
                command,
                cwd=cwd,
                check=False,
                text=True,
                capture_output=True,
            )
        except FileNotFoundError as exc:
            raise CloneError(
                "Git executable not found.",
                hint="Install git and ensure it is on PATH.",
                context={"stage": "clone", "operation": operation, "tool": self.tool},
            ) from exc
        if completed.returncode != 0:
            raise CloneError(
                "Git command failed.",
                hint="Inspect repository/tag inputs and network access.",
                context={
                    "stage": "clone",
                    "operation": operation,
                    "argv": " ".join(command),
                    "stderr": completed.stderr.strip(),
                },
            )
        return completed.stdout.strip()
