"""Invocation inputs and host detection."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from leo_setup.errors import InvalidParameterError
from leo_setup.models import DEFAULT_TOOLCHAIN, Arch, InstallRequest, OperatingSystem
from leo_setup.normalize import build_request, normalize_arch, normalize_os

TRUE_VALUES = frozenset({"true", "yes", "on", "1"})
FALSE_VALUES = frozenset({"false", "no", "off", "0"})


@dataclass(frozen=True, slots=True)
class ActionInputs:
    version: str
    toolchain_version: str = DEFAULT_TOOLCHAIN
    cache_enabled: bool = True
    cache_save_policy: str = "on_success"
    run_audit: bool = True
    audit_deny_warnings: bool = False
    working_directory: str = "."

    def to_request(self, *, os_name: str, arch: str) -> InstallRequest:
        return build_request(
            version=self.version,
            os_name=os_name,
            arch=arch,
            toolchain_version=self.toolchain_version,
            cache_enabled=self.cache_enabled,
            cache_save_policy=self.cache_save_policy,
            run_audit=self.run_audit,
            audit_deny_warnings=self.audit_deny_warnings,
        )


def inputs_from_mapping(env: Mapping[str, str]) -> ActionInputs:
    """Read ``INPUT_<NAME>`` entries the way the Actions runner exports them."""
    version = _input(env, "version")
    if not version:
        raise InvalidParameterError(
            "Input `version` is required.",
            hint="Set `with: version: '3.4.0'` on the step.",
            context={"stage": "config", "parameter": "version"},
        )
    return ActionInputs(
        version=version,
        toolchain_version=_input(env, "toolchain-version") or DEFAULT_TOOLCHAIN,
        cache_enabled=parse_bool(_input(env, "cache"), name="cache", default=True),
        cache_save_policy=_input(env, "cache-save-policy") or "on_success",
        run_audit=parse_bool(_input(env, "audit"), name="audit", default=True),
        audit_deny_warnings=parse_bool(
            _input(env, "audit-deny-warnings"),
            name="audit-deny-warnings",
            default=False,
        ),
        working_directory=_input(env, "working-directory") or ".",
    )


def parse_bool(raw: str | None, *, name: str, default: bool) -> bool:
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise InvalidParameterError(
        f"Input `{name}` must be a boolean, got `{raw}`.",
        hint="Use `true` or `false`.",
        context={"stage": "config", "parameter": name},
    )


def detect_host(system: str, machine: str) -> tuple[OperatingSystem, Arch]:
    """Map ``platform.system()``/``platform.machine()`` values to canonical names."""
    return normalize_os(system), normalize_arch(machine)


def _input(env: Mapping[str, str], name: str) -> str | None:
    for candidate in (name, name.replace("-", "_")):
        value = env.get(f"INPUT_{candidate.upper()}")
        if value is not None:
            return value.strip()
    return None
