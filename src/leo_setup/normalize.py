"""Canonicalize raw install parameters into key-safe values."""

from __future__ import annotations

import re
from typing import cast

from leo_setup.errors import InvalidParameterError
from leo_setup.models import (
    DEFAULT_REPO_URL,
    DEFAULT_TOOLCHAIN,
    Arch,
    InstallRequest,
    OperatingSystem,
    SavePolicy,
)

KEY_SAFE_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")

OS_SYNONYMS: dict[str, OperatingSystem] = {
    "linux": "linux",
    "ubuntu": "linux",
    "macos": "macos",
    "darwin": "macos",
    "mac": "macos",
    "osx": "macos",
    "windows": "windows",
    "windows_nt": "windows",
    "win": "windows",
    "win32": "windows",
    "win64": "windows",
}

ARCH_SYNONYMS: dict[str, Arch] = {
    "x86_64": "x86_64",
    "x86-64": "x86_64",
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "arm64",
    "aarch64": "arm64",
    "armv8": "arm64",
}

SAVE_POLICIES: tuple[SavePolicy, ...] = ("always", "on_success", "never")


def normalize_version(raw: str) -> str:
    version = raw.strip()
    if version[:1] in ("v", "V"):
        version = version[1:]
    if not version:
        raise InvalidParameterError(
            "Tool version must not be empty.",
            hint="Pass a released version such as `3.4.0`.",
            context={"stage": "normalize", "parameter": "version"},
        )
    _ensure_key_safe(version, parameter="version")
    return version


def normalize_toolchain(raw: str | None) -> str:
    toolchain = (raw or "").strip().lower()
    if not toolchain:
        return DEFAULT_TOOLCHAIN
    _ensure_key_safe(toolchain, parameter="toolchain_version")
    return toolchain


def normalize_os(raw: str) -> OperatingSystem:
    value = raw.strip().lower()
    try:
        return OS_SYNONYMS[value]
    except KeyError:
        raise InvalidParameterError(
            f"Unsupported operating system `{raw}`.",
            hint=f"Use one of: {', '.join(sorted(set(OS_SYNONYMS.values())))}.",
            context={"stage": "normalize", "parameter": "os"},
        ) from None


def normalize_arch(raw: str) -> Arch:
    value = raw.strip().lower()
    try:
        return ARCH_SYNONYMS[value]
    except KeyError:
        raise InvalidParameterError(
            f"Unsupported architecture `{raw}`.",
            hint=f"Use one of: {', '.join(sorted(set(ARCH_SYNONYMS.values())))}.",
            context={"stage": "normalize", "parameter": "arch"},
        ) from None


def normalize_save_policy(raw: str) -> SavePolicy:
    value = raw.strip().lower().replace("-", "_")
    if value not in SAVE_POLICIES:
        raise InvalidParameterError(
            f"Unsupported cache save policy `{raw}`.",
            hint="Use one of: always, on_success, never.",
            context={"stage": "normalize", "parameter": "cache_save_policy"},
        )
    return cast(SavePolicy, value)


def build_request(
    *,
    version: str,
    os_name: str,
    arch: str,
    toolchain_version: str | None = None,
    cache_enabled: bool = True,
    cache_save_policy: str = "on_success",
    run_audit: bool = True,
    audit_deny_warnings: bool = False,
    repo_url: str = DEFAULT_REPO_URL,
) -> InstallRequest:
    """Normalize raw parameters and return the immutable request."""
    return InstallRequest(
        tool_version=normalize_version(version),
        os=normalize_os(os_name),
        arch=normalize_arch(arch),
        toolchain_version=normalize_toolchain(toolchain_version),
        cache_enabled=cache_enabled,
        cache_save_policy=normalize_save_policy(cache_save_policy),
        run_audit=run_audit,
        audit_deny_warnings=audit_deny_warnings,
        repo_url=repo_url,
    )


def _ensure_key_safe(value: str, *, parameter: str) -> None:
    if not KEY_SAFE_PATTERN.fullmatch(value):
        raise InvalidParameterError(
            f"Parameter `{parameter}` contains characters that are not cache-key safe.",
            hint="Only letters, digits, `.`, `_` and `-` are allowed.",
            context={"stage": "normalize", "parameter": parameter, "value": value},
        )
