"""Core typed dataclasses for install requests, run outcomes, and verification reports."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import cbor2

if TYPE_CHECKING:
    from leo_setup.cache.keys import CacheKeySet

OperatingSystem = Literal["linux", "macos", "windows"]
Arch = Literal["x86_64", "arm64"]
SavePolicy = Literal["always", "on_success", "never"]
AuditStatus = Literal["pass", "warn", "skip", "fail"]
Recommendation = Literal["safe", "caution"]

DEFAULT_TOOLCHAIN = "stable"
DEFAULT_REPO_URL = "https://github.com/ProvableHQ/leo.git"


@dataclass(frozen=True, slots=True)
class InstallRequest:
    tool_version: str
    os: OperatingSystem
    arch: Arch
    toolchain_version: str = DEFAULT_TOOLCHAIN
    cache_enabled: bool = True
    cache_save_policy: SavePolicy = "on_success"
    run_audit: bool = True
    audit_deny_warnings: bool = False
    repo_url: str = DEFAULT_REPO_URL

    @property
    def tag(self) -> str:
        return f"v{self.tool_version}"


@dataclass(frozen=True, slots=True)
class InstallLayout:
    """Filesystem locations touched by one install run."""

    install_dir: Path
    cargo_home: Path
    target_dir: Path
    source_dir: Path

    @classmethod
    def from_working_directory(
        cls,
        working_directory: str | Path,
        *,
        cargo_home: str | Path,
    ) -> InstallLayout:
        root = Path(working_directory).resolve() / ".leo-setup"
        return cls(
            install_dir=root / "bin",
            cargo_home=Path(cargo_home),
            target_dir=root / "target",
            source_dir=root / "src",
        )

    def binary_path(self, os_name: OperatingSystem) -> Path:
        return self.install_dir / ("leo.exe" if os_name == "windows" else "leo")

    def dependency_paths(self) -> tuple[Path, ...]:
        return (
            self.cargo_home / "registry" / "index",
            self.cargo_home / "registry" / "cache",
            self.cargo_home / "git" / "db",
            self.target_dir,
        )


@dataclass(slots=True)
class CacheOutcome:
    """Mutable record of what happened during one install run.

    Each field is written at most once, by the stage that owns it.
    """

    binary_hit: bool = False
    dependency_hit: bool = False
    build_performed: bool = False
    build_duration_seconds: float = 0.0
    saved_binary: bool = False
    saved_dependency: bool = False
    _recorded: set[str] = field(default_factory=set, repr=False, compare=False)

    def record(self, name: str, value: bool | float) -> None:
        if name.startswith("_") or name not in _OUTCOME_FIELDS:
            raise AttributeError(f"CacheOutcome has no field `{name}`.")
        if name in self._recorded:
            raise RuntimeError(f"CacheOutcome field `{name}` was already recorded.")
        self._recorded.add(name)
        setattr(self, name, value)

    def to_dict(self) -> dict[str, object]:
        return {name: getattr(self, name) for name in _OUTCOME_FIELDS}


_OUTCOME_FIELDS = tuple(f.name for f in fields(CacheOutcome) if not f.name.startswith("_"))


@dataclass(frozen=True, slots=True)
class InstallResult:
    outcome: CacheOutcome
    keys: CacheKeySet
    installed_path: Path
    commit_sha: str = ""


def run_outputs(request: InstallRequest, outcome: CacheOutcome) -> dict[str, str]:
    """Return the observable outputs of an install run, keyed by output name."""
    return {
        "tool-version-installed": request.tool_version,
        "binary-cache-hit": _flag(outcome.binary_hit),
        "dependency-cache-hit": _flag(outcome.dependency_hit),
        "build-duration-seconds": str(round(outcome.build_duration_seconds)),
    }


def _flag(value: bool) -> str:
    return "true" if value else "false"


@dataclass(slots=True)
class VerificationReport:
    """Result of verifying one upstream release.

    Filled in probe by probe. After a fatal probe the remaining fields keep
    their defaults and ``halted_at`` names the probe that stopped the run.
    """

    version: str
    tag_exists: bool = False
    clone_ok: bool = False
    commit_sha: str = ""
    gpg_signed: bool = False
    slsa_attested: bool = False
    lockfile_present: bool = False
    lockfile_packages: int = 0
    audit_status: AuditStatus | None = None
    halted_at: str | None = None

    @property
    def recommendation(self) -> Recommendation:
        return recommend(gpg_signed=self.gpg_signed, slsa_attested=self.slsa_attested)

    def to_json(self, path: str | Path | None = None) -> str:
        encoded = json.dumps(self._payload(), indent=2, sort_keys=True) + "\n"
        if path is not None:
            Path(path).write_text(encoded, encoding="utf-8")
        return encoded

    def to_cbor(self, path: str | Path | None = None) -> bytes:
        encoded = cbor2.dumps(self._payload(), canonical=True)
        if path is not None:
            Path(path).write_bytes(encoded)
        return encoded

    def _payload(self) -> dict[str, object]:
        return {
            "schema_version": 1,
            "version": self.version,
            "tag_exists": self.tag_exists,
            "clone_ok": self.clone_ok,
            "commit_sha": self.commit_sha,
            "gpg_signed": self.gpg_signed,
            "slsa_attested": self.slsa_attested,
            "lockfile_present": self.lockfile_present,
            "lockfile_packages": self.lockfile_packages,
            "audit_status": self.audit_status,
            "halted_at": self.halted_at,
            "recommendation": self.recommendation,
        }


def recommend(*, gpg_signed: bool, slsa_attested: bool) -> Recommendation:
    """Reduce provenance probe results to a recommendation."""
    return "safe" if gpg_signed or slsa_attested else "caution"
