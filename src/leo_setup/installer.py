"""Install orchestration: binary cache, dependency cache, locked build, save policy.

One run walks ``start -> binary restore -> (hit: done | miss: toolchain ->
dependency restore -> clone -> audit -> build -> install -> save -> done)``.
Cache errors degrade to a miss or a skipped save. Every other stage error is
fatal and is raised to the caller once the save decision has been made.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

from leo_setup.audit import Scanner, ScannerUnavailable
from leo_setup.builders import Builder, BuildSpec, Toolchain, install_artifact
from leo_setup.cache import ArtifactCache, CacheKeySet, build_cache_keys
from leo_setup.errors import (
    AuditFailedError,
    BuildError,
    CacheRestoreError,
    CacheSaveError,
    LeoSetupError,
    TagMismatchError,
)
from leo_setup.fetch import SourceRemote
from leo_setup.models import (
    CacheOutcome,
    InstallLayout,
    InstallRequest,
    InstallResult,
    SavePolicy,
)
from leo_setup.observability import Level, StructuredLogger

OPERATION = "install"


def should_save(policy: SavePolicy, *, succeeded: bool) -> bool:
    if policy == "always":
        return True
    if policy == "on_success":
        return succeeded
    return False


def _discard_previous_binary(binary_path: Path) -> None:
    try:
        binary_path.unlink(missing_ok=True)
    except OSError as exc:
        raise BuildError(
            "Unable to remove the previously installed binary.",
            hint="Check permissions of the install directory.",
            context={"stage": "install", "path": str(binary_path), "error": str(exc)},
        ) from exc


@dataclass(slots=True)
class Installer:
    cache: ArtifactCache
    toolchain: Toolchain
    remote: SourceRemote
    builder: Builder
    scanner: Scanner | None = None
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    clock: Callable[[], float] = time.monotonic

    def run(
        self,
        request: InstallRequest,
        layout: InstallLayout,
        outcome: CacheOutcome | None = None,
    ) -> InstallResult:
        """Install the requested version, reusing cached work where possible.

        Pass *outcome* to observe what happened even when a fatal error is
        raised.
        """
        if outcome is None:
            outcome = CacheOutcome()
        keys = build_cache_keys(request)
        binary_path = layout.binary_path(request.os)
        self._log(
            "start",
            f"Installing leo {request.tag} for {request.os}/{request.arch} "
            f"with toolchain {request.toolchain_version}.",
            extra=keys.to_dict(),
        )
        _discard_previous_binary(binary_path)

        if self._restore_binary(request, keys, binary_path):
            outcome.record("binary_hit", True)
            self._log("done", "Binary restored from cache; build skipped.", extra=outcome.to_dict())
            return InstallResult(outcome=outcome, keys=keys, installed_path=binary_path)
        outcome.record("binary_hit", False)

        failure: LeoSetupError | None = None
        commit_sha = ""
        try:
            commit_sha = self._build_and_install(request, layout, keys, outcome, binary_path)
        except LeoSetupError as exc:
            failure = exc
            self._log(exc.stage or "build", exc.args[0], level="error", extra=exc.to_dict())

        self._save(request, layout, keys, outcome, binary_path, succeeded=failure is None)
        if failure is not None:
            raise failure

        self._log("done", f"Installed leo {request.tag} to {binary_path}.", extra=outcome.to_dict())
        return InstallResult(
            outcome=outcome,
            keys=keys,
            installed_path=binary_path,
            commit_sha=commit_sha,
        )

    def _build_and_install(
        self,
        request: InstallRequest,
        layout: InstallLayout,
        keys: CacheKeySet,
        outcome: CacheOutcome,
        binary_path: Path,
    ) -> str:
        self._log("toolchain", f"Ensuring Rust toolchain {request.toolchain_version}.")
        self.toolchain.ensure(request.toolchain_version)

        if request.cache_enabled:
            hit = self._restore(
                keys.dependency_key,
                keys.dependency_restore_keys,
                layout.dependency_paths(),
                stage="dependency_restore",
            )
            outcome.record("dependency_hit", hit)

        self._log("clone", f"Cloning {request.repo_url} at {request.tag}.")
        clone = self.remote.shallow_clone(request.repo_url, request.tag, layout.source_dir)
        if request.tag not in clone.tags:
            raise TagMismatchError(
                f"Checkout does not resolve to tag {request.tag}.",
                hint="The tag may have been moved or shadowed by a branch of the same name.",
                context={
                    "stage": "clone",
                    "expected": request.tag,
                    "actual": ", ".join(clone.tags) or "(none)",
                    "commit": clone.commit_sha,
                },
            )
        self._log("clone", f"Checked out {clone.commit_sha}.", extra={"commit": clone.commit_sha})

        self._audit(request, clone.path)

        started = self.clock()
        self._log("build", "Building with the lockfile enforced.")
        artifact = self.builder.build(
            BuildSpec(
                source=clone.path,
                toolchain=request.toolchain_version,
                target_dir=layout.target_dir,
                locked=True,
                release=True,
                windows=request.os == "windows",
                env={"CARGO_HOME": str(layout.cargo_home)},
            )
        )
        install_artifact(artifact, binary_path)
        outcome.record("build_performed", True)
        outcome.record("build_duration_seconds", max(self.clock() - started, 0.0))
        self._log(
            "install",
            f"Installed {binary_path} in {outcome.build_duration_seconds:.1f}s.",
        )
        return clone.commit_sha

    def _audit(self, request: InstallRequest, source_dir: Path) -> None:
        if not request.run_audit:
            self._log("audit", "Audit disabled.")
            return
        if self.scanner is None:
            self._log("audit", "No scanner configured; skipping audit.", level="warning")
            return
        try:
            result = self.scanner.audit(source_dir, deny_warnings=request.audit_deny_warnings)
        except ScannerUnavailable as exc:
            self._log("audit", exc.args[0], level="warning")
            return

        for finding in result.findings:
            self._log("audit", str(finding), level="warning")
        if request.audit_deny_warnings and (result.findings or result.status == "fail"):
            raise AuditFailedError(
                f"Audit reported {len(result.findings)} finding(s) and warnings are denied.",
                hint="Upgrade the release or disable audit_deny_warnings.",
                context={
                    "stage": "audit",
                    "advisories": ", ".join(f.advisory for f in result.findings),
                },
            )
        self._log("audit", f"Audit status: {result.status}.")

    def _restore_binary(self, request: InstallRequest, keys: CacheKeySet, binary_path: Path) -> bool:
        if not request.cache_enabled:
            self._log("binary_restore", "Cache disabled.")
            return False
        if not self._restore(keys.binary_key, (), (binary_path,), stage="binary_restore"):
            return False
        if not binary_path.is_file():
            self._log(
                "binary_restore",
                "Cache entry restored no binary; treating as a miss.",
                level="warning",
            )
            return False
        return True

    def _restore(
        self,
        key: str,
        fallback_keys: Sequence[str],
        paths: Sequence[Path],
        *,
        stage: str,
    ) -> bool:
        try:
            result = self.cache.restore(key, fallback_keys, paths)
        except CacheRestoreError as exc:
            self._log(stage, f"{exc.args[0]} Treating as a miss.", level="warning")
            return False
        if result.hit:
            self._log(stage, f"Cache hit on {key}.")
        elif result.matched_key is not None:
            self._log(stage, f"Partial cache hit on {result.matched_key}.")
        else:
            self._log(stage, f"Cache miss on {key}.")
        return result.hit

    def _save(
        self,
        request: InstallRequest,
        layout: InstallLayout,
        keys: CacheKeySet,
        outcome: CacheOutcome,
        binary_path: Path,
        *,
        succeeded: bool,
    ) -> None:
        if not request.cache_enabled:
            return
        if not should_save(request.cache_save_policy, succeeded=succeeded):
            self._log(
                "save",
                f"Skipping cache save (policy={request.cache_save_policy}, succeeded={succeeded}).",
            )
            return
        # Only a binary built by this run may be stored under this run's key.
        binary_paths = (binary_path,) if outcome.build_performed else ()
        outcome.record("saved_binary", self._save_entry(keys.binary_key, binary_paths))
        outcome.record(
            "saved_dependency",
            self._save_entry(keys.dependency_key, layout.dependency_paths()),
        )

    def _save_entry(self, key: str, paths: Sequence[Path]) -> bool:
        try:
            result = self.cache.save(key, paths)
        except CacheSaveError as exc:
            self._log("save", f"{exc.args[0]} Continuing without saving {key}.", level="warning")
            return False
        if not result.ok:
            self._log("save", f"Cache service declined {key}.", level="warning")
            return False
        self._log("save", f"Saved {key}.")
        return True

    def _log(
        self,
        stage: str,
        message: str,
        *,
        level: Level = "info",
        extra: dict[str, object] | None = None,
    ) -> None:
        self.logger.log(operation=OPERATION, stage=stage, message=message, level=level, extra=extra)
