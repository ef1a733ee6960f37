"""Command-line entry point.

Usage:
    leo-setup keys --version 3.4.0
    leo-setup install --version 3.4.0 --cache-save-policy always
    leo-setup action
    leo-setup verify 3.4.0 --json report.json

This is the only module that reads the process environment.
"""

from __future__ import annotations

import argparse
import json
import os
import platform
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

from leo_setup.audit import CargoAuditScanner
from leo_setup.builders import CargoBuilder, RustupToolchain
from leo_setup.cache import LocalCacheStore, build_cache_keys
from leo_setup.config import ActionInputs, detect_host, inputs_from_mapping
from leo_setup.errors import LeoSetupError
from leo_setup.fetch import GitRemote
from leo_setup.installer import Installer
from leo_setup.models import CacheOutcome, InstallLayout, VerificationReport, run_outputs
from leo_setup.normalize import build_request, normalize_version
from leo_setup.observability import (
    StructuredLogger,
    append_path,
    append_summary,
    write_outputs,
)
from leo_setup.verify import GitHubReleaseAttestations, ReleaseVerifier, render_summary


def cmd_keys(args: argparse.Namespace, env: Mapping[str, str]) -> int:
    os_name, arch = args.os, args.arch
    if not os_name or not arch:
        host_os, host_arch = _host()
        os_name, arch = os_name or host_os, arch or host_arch
    request = build_request(
        version=args.version,
        os_name=os_name,
        arch=arch,
        toolchain_version=args.toolchain,
    )
    print(json.dumps(build_cache_keys(request).to_dict(), indent=2))
    return 0


def cmd_install(args: argparse.Namespace, env: Mapping[str, str]) -> int:
    inputs = ActionInputs(
        version=args.version,
        toolchain_version=args.toolchain,
        cache_enabled=not args.no_cache,
        cache_save_policy=args.cache_save_policy,
        run_audit=not args.no_audit,
        audit_deny_warnings=args.audit_deny_warnings,
        working_directory=args.working_directory,
    )
    return _install(inputs, env, cache_dir=args.cache_dir, log_json=args.log_json, actions=False)


def cmd_action(args: argparse.Namespace, env: Mapping[str, str]) -> int:
    inputs = inputs_from_mapping(env)
    return _install(inputs, env, cache_dir=args.cache_dir, log_json=args.log_json, actions=True)


def cmd_verify(args: argparse.Namespace, env: Mapping[str, str]) -> int:
    logger = StructuredLogger(echo=sys.stderr, annotations="GITHUB_ACTIONS" in env)
    verifier = ReleaseVerifier(
        remote=GitRemote(),
        attestations=GitHubReleaseAttestations(),
        scanner=None if args.no_audit else CargoAuditScanner(),
        logger=logger,
    )
    report = VerificationReport(version=normalize_version(args.version))
    try:
        verifier.verify(args.version, report=report)
    finally:
        summary = render_summary(report)
        print(summary)
        if args.json:
            report.to_json(args.json)
        if args.cbor:
            report.to_cbor(args.cbor)
        if env.get("GITHUB_STEP_SUMMARY"):
            append_summary(env["GITHUB_STEP_SUMMARY"], summary)
    return 0


def _install(
    inputs: ActionInputs,
    env: Mapping[str, str],
    *,
    cache_dir: str | None,
    log_json: str | None,
    actions: bool,
) -> int:
    host_os, host_arch = _host()
    request = inputs.to_request(os_name=host_os, arch=host_arch)
    layout = InstallLayout.from_working_directory(
        inputs.working_directory,
        cargo_home=env.get("CARGO_HOME") or Path.home() / ".cargo",
    )
    logger = StructuredLogger(echo=sys.stderr, annotations=actions)
    installer = Installer(
        cache=LocalCacheStore(cache_dir or _default_cache_dir(env, layout)),
        toolchain=RustupToolchain(),
        remote=GitRemote(),
        builder=CargoBuilder(),
        scanner=CargoAuditScanner(),
        logger=logger,
    )
    outcome = CacheOutcome()
    try:
        result = installer.run(request, layout, outcome=outcome)
    finally:
        if actions and env.get("GITHUB_OUTPUT"):
            write_outputs(env["GITHUB_OUTPUT"], run_outputs(request, outcome))
        if log_json:
            logger.to_json_lines(log_json)
    if actions and env.get("GITHUB_PATH"):
        append_path(env["GITHUB_PATH"], result.installed_path.parent)
    print(result.installed_path)
    return 0


def _default_cache_dir(env: Mapping[str, str], layout: InstallLayout) -> Path:
    tool_cache = env.get("RUNNER_TOOL_CACHE")
    if tool_cache:
        return Path(tool_cache) / "leo-setup"
    return layout.install_dir.parent / "cache"


def _host() -> tuple[str, str]:
    host_os, host_arch = detect_host(platform.system(), platform.machine())
    return host_os, host_arch


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="leo-setup",
        description="Build, cache, and verify the Leo compiler from source",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    keys_p = sub.add_parser("keys", help="Print the cache keys for a version and platform")
    keys_p.add_argument("--version", required=True, help="Leo version, e.g. 3.4.0")
    keys_p.add_argument("--toolchain", default="stable", help="Rust toolchain version")
    keys_p.add_argument("--os", help="Target OS (defaults to the host)")
    keys_p.add_argument("--arch", help="Target architecture (defaults to the host)")

    for name, help_text in (
        ("install", "Install Leo from source using the cache"),
        ("action", "Install Leo from INPUT_* variables and write runner outputs"),
    ):
        command_p = sub.add_parser(name, help=help_text)
        command_p.add_argument("--cache-dir", help="Directory backing the artifact cache")
        command_p.add_argument("--log-json", help="Write structured log records to this file")
        if name == "install":
            command_p.add_argument("--version", required=True, help="Leo version, e.g. 3.4.0")
            command_p.add_argument("--toolchain", default="stable", help="Rust toolchain version")
            command_p.add_argument("--no-cache", action="store_true", help="Disable caching")
            command_p.add_argument(
                "--cache-save-policy",
                default="on_success",
                choices=("always", "on_success", "on-success", "never"),
            )
            command_p.add_argument("--no-audit", action="store_true", help="Skip cargo audit")
            command_p.add_argument(
                "--audit-deny-warnings",
                action="store_true",
                help="Fail when cargo audit reports any finding",
            )
            command_p.add_argument("--working-directory", default=".")

    verify_p = sub.add_parser("verify", help="Verify an upstream release before pinning it")
    verify_p.add_argument("version", help="Leo version, e.g. 3.4.0")
    verify_p.add_argument("--json", help="Write the report as JSON")
    verify_p.add_argument("--cbor", help="Write the report as canonical CBOR")
    verify_p.add_argument("--no-audit", action="store_true", help="Skip cargo audit")
    return parser


COMMANDS = {
    "keys": cmd_keys,
    "install": cmd_install,
    "action": cmd_action,
    "verify": cmd_verify,
}


def main(argv: Sequence[str] | None = None, env: Mapping[str, str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    environ = os.environ if env is None else env
    try:
        return COMMANDS[args.command](args, environ)
    except LeoSetupError as exc:
        stage = exc.stage or args.command
        print(f"error: {args.command} failed at stage `{stage}` [{exc.code}]", file=sys.stderr)
        print(str(exc), file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
