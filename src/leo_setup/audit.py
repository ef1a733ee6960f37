"""Dependency vulnerability scanning with cargo-audit."""

from __future__ import annotations

import json
import shutil
import subprocess
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, Protocol

from leo_setup.errors import ErrorCode, LeoSetupError

ScanStatus = Literal["pass", "warn", "fail"]


class ScannerUnavailable(LeoSetupError):
    """The scanner could not run; the audit is skipped."""

    error_code = ErrorCode.AUDIT
    fatal = False


@dataclass(frozen=True, slots=True)
class Finding:
    kind: str
    advisory: str
    package: str
    version: str
    title: str = ""

    def __str__(self) -> str:
        label = f"{self.package} {self.version}".strip()
        return f"{self.advisory} ({self.kind}) in {label}: {self.title}".rstrip(": ")


@dataclass(frozen=True, slots=True)
class AuditResult:
    status: ScanStatus
    findings: tuple[Finding, ...] = ()


class Scanner(Protocol):
    def audit(self, source_dir: Path, *, deny_warnings: bool) -> AuditResult:
        """Scan the locked dependency graph under *source_dir*."""


@dataclass(slots=True)
class CargoAuditScanner:
    cargo: str = "cargo"
    auto_install: bool = True

    def audit(self, source_dir: Path, *, deny_warnings: bool) -> AuditResult:
        self._ensure_available()
        command = [self.cargo, "audit", "--json"]
        if deny_warnings:
            command.extend(["--deny", "warnings"])
        completed = subprocess.run(
            command,
            cwd=str(source_dir),
            check=False,
            text=True,
            capture_output=True,
        )
        try:
            report = json.loads(completed.stdout)
        except json.JSONDecodeError as exc:
            raise ScannerUnavailable(
                "cargo audit produced unreadable output.",
                context={
                    "stage": "audit",
                    "returncode": str(completed.returncode),
                    "stderr": completed.stderr.strip()[-2000:],
                },
            ) from exc
        return parse_report(report, deny_warnings=deny_warnings)

    def _ensure_available(self) -> None:
        if shutil.which(self.cargo) is None:
            raise ScannerUnavailable(
                "cargo is not installed; skipping audit.",
                context={"stage": "audit"},
            )
        if shutil.which("cargo-audit") is not None:
            return
        if not self.auto_install:
            raise ScannerUnavailable(
                "cargo-audit is not installed; skipping audit.",
                hint="Run `cargo install cargo-audit --locked`.",
                context={"stage": "audit"},
            )
        completed = subprocess.run(
            [self.cargo, "install", "cargo-audit", "--locked", "--quiet"],
            check=False,
            text=True,
            capture_output=True,
        )
        if completed.returncode != 0:
            raise ScannerUnavailable(
                "Unable to install cargo-audit; skipping audit.",
                context={"stage": "audit", "stderr": completed.stderr.strip()[-2000:]},
            )


def parse_report(report: Mapping[str, Any], *, deny_warnings: bool) -> AuditResult:
    """Reduce a ``cargo audit --json`` report to a status and findings."""
    vulnerabilities = [
        _finding("vulnerability", item)
        for item in (report.get("vulnerabilities") or {}).get("list", [])
    ]
    warnings: list[Finding] = []
    for kind, items in sorted((report.get("warnings") or {}).items()):
        warnings.extend(_finding(kind, item) for item in items or [])

    if vulnerabilities or (warnings and deny_warnings):
        status: ScanStatus = "fail"
    elif warnings:
        status = "warn"
    else:
        status = "pass"
    return AuditResult(status=status, findings=(*vulnerabilities, *warnings))


def _finding(kind: str, item: Mapping[str, Any]) -> Finding:
    advisory = item.get("advisory") or {}
    package = item.get("package") or {}
    return Finding(
        kind=str(item.get("kind") or kind),
        advisory=str(advisory.get("id", "")),
        package=str(package.get("name", "")),
        version=str(package.get("version", "")),
        title=str(advisory.get("title", "")),
    )
