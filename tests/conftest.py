"""Shared test fixtures and in-memory collaborators."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from leo_setup.audit import AuditResult, ScannerUnavailable
from leo_setup.builders import BuildArtifact, BuildSpec
from leo_setup.cache import CacheRestoreResult, CacheSaveResult, LocalCacheStore
from leo_setup.errors import BuildError, CacheRestoreError, CacheSaveError, CloneError, ToolchainError
from leo_setup.fetch import CloneResult
from leo_setup.installer import Installer
from leo_setup.models import InstallLayout
from leo_setup.normalize import build_request
from leo_setup.observability import StructuredLogger

CARGO_LOCK = """\
version = 3

[[package]]
name = "anyhow"
version = "1.0.86"

[[package]]
name = "leo-lang"
version = "3.4.0"
"""


@dataclass
class FakeRemote:
    tags: dict[str, str] = field(default_factory=lambda: {"v3.4.0": "a" * 40})
    signed: set[str] = field(default_factory=set)
    checkout_tags: dict[str, tuple[str, ...]] = field(default_factory=dict)
    lockfile: bool = True
    lockfile_bytes: bytes | None = None
    clone_error: bool = False
    clones: list[str] = field(default_factory=list)

    def tag_exists(self, repo: str, tag: str) -> bool:
        return tag in self.tags

    def list_tags(self, repo: str, *, limit: int = 10) -> list[str]:
        return sorted(self.tags)[-limit:]

    def shallow_clone(self, repo: str, tag: str, dest: Path, *, depth: int = 1) -> CloneResult:
        if self.clone_error or tag not in self.tags:
            raise CloneError("Git command failed.", context={"stage": "clone", "tag": tag})
        dest.mkdir(parents=True, exist_ok=True)
        if self.lockfile:
            lock = dest / "Cargo.lock"
            if self.lockfile_bytes is None:
                lock.write_text(CARGO_LOCK, encoding="utf-8")
            else:
                lock.write_bytes(self.lockfile_bytes)
        self.clones.append(tag)
        return CloneResult(
            path=dest,
            commit_sha=self.tags[tag],
            tags=self.checkout_tags.get(tag, (tag,)),
        )

    def verify_tag(self, checkout: Path, tag: str) -> bool:
        return tag in self.signed


@dataclass
class FakeToolchain:
    fail: bool = False
    ensured: list[str] = field(default_factory=list)

    def ensure(self, version: str) -> None:
        if self.fail:
            raise ToolchainError("toolchain unavailable.", context={"stage": "toolchain"})
        self.ensured.append(version)


@dataclass
class FakeBuilder:
    """Writes a fake binary and a fake downloaded crate, like a real cargo run."""

    fail: bool = False
    specs: list[BuildSpec] = field(default_factory=list)
    warm_registry: list[bool] = field(default_factory=list)

    def build(self, spec: BuildSpec) -> BuildArtifact:
        self.specs.append(spec)
        crate = Path(spec.env["CARGO_HOME"]) / "registry" / "cache" / "anyhow-1.0.86.crate"
        self.warm_registry.append(crate.exists())
        crate.parent.mkdir(parents=True, exist_ok=True)
        crate.write_bytes(b"crate")
        if self.fail:
            raise BuildError("cargo build failed.", context={"stage": "build"})
        output = spec.target_dir / "release" / spec.binary
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(f"leo from {spec.source}\n", encoding="utf-8")
        return BuildArtifact(builder="fake", output_path=output)


@dataclass
class FakeScanner:
    result: AuditResult = field(default_factory=lambda: AuditResult(status="pass"))
    unavailable: bool = False
    calls: list[bool] = field(default_factory=list)

    def audit(self, source_dir: Path, *, deny_warnings: bool) -> AuditResult:
        self.calls.append(deny_warnings)
        if self.unavailable:
            raise ScannerUnavailable("cargo is not installed; skipping audit.", context={"stage": "audit"})
        return self.result


@dataclass
class FakeAttestations:
    attested: set[str] = field(default_factory=set)
    error: Exception | None = None

    def has_attestation(self, tag: str) -> bool:
        if self.error is not None:
            raise self.error
        return tag in self.attested


@dataclass
class FailingCache:
    restores: int = 0
    saves: int = 0

    def restore(
        self,
        key: str,
        fallback_keys: Sequence[str],
        paths: Sequence[Path],
    ) -> CacheRestoreResult:
        self.restores += 1
        raise CacheRestoreError("cache service unavailable.", context={"stage": "cache_restore"})

    def save(self, key: str, paths: Sequence[Path]) -> CacheSaveResult:
        self.saves += 1
        raise CacheSaveError("quota exceeded.", context={"stage": "cache_save"})


@dataclass
class StepClock:
    step: float = 5.0
    now: float = 0.0

    def __call__(self) -> float:
        self.now += self.step
        return self.now


def make_layout(root: Path) -> InstallLayout:
    return InstallLayout.from_working_directory(root, cargo_home=root / "cargo-home")


@pytest.fixture
def request_factory():
    def factory(**overrides: object):
        params: dict[str, object] = {"version": "3.4.0", "os_name": "linux", "arch": "x86_64"}
        params.update(overrides)
        return build_request(**params)  # type: ignore[arg-type]

    return factory


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def builder() -> FakeBuilder:
    return FakeBuilder()


@pytest.fixture
def toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def scanner() -> FakeScanner:
    return FakeScanner()


@pytest.fixture
def cache(tmp_path: Path) -> LocalCacheStore:
    return LocalCacheStore(tmp_path / "cache")


@pytest.fixture
def installer(
    cache: LocalCacheStore,
    toolchain: FakeToolchain,
    remote: FakeRemote,
    builder: FakeBuilder,
    scanner: FakeScanner,
) -> Installer:
    return Installer(
        cache=cache,
        toolchain=toolchain,
        remote=remote,
        builder=builder,
        scanner=scanner,
        logger=StructuredLogger(),
        clock=StepClock(),
    )


@pytest.fixture
def layout_factory(tmp_path: Path):
    def factory(name: str = "run") -> InstallLayout:
        return make_layout(tmp_path / name)

    return factory


@pytest.fixture
def attestations() -> FakeAttestations:
    return FakeAttestations()


@pytest.fixture
def failing_cache() -> FailingCache:
    return FailingCache()
