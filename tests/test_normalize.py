import pytest

from leo_setup.errors import ErrorCode, InvalidParameterError
from leo_setup.normalize import (
    build_request,
    normalize_arch,
    normalize_os,
    normalize_save_policy,
    normalize_toolchain,
    normalize_version,
)


@pytest.mark.parametrize("raw", ["3.4.0", "v3.4.0", "V3.4.0", "  v3.4.0\n"])
def test_version_strips_leading_v_and_whitespace(raw: str) -> None:
    assert normalize_version(raw) == "3.4.0"


@pytest.mark.parametrize("raw", ["", "v", "   "])
def test_empty_version_is_rejected(raw: str) -> None:
    with pytest.raises(InvalidParameterError) as excinfo:
        normalize_version(raw)

    assert excinfo.value.code == ErrorCode.INVALID_PARAMETER.value
    assert excinfo.value.stage == "normalize"


@pytest.mark.parametrize("raw", ["3.4.0/../x", "3.4 0", "3.4.0+build", "3.4.0;rm"])
def test_version_with_unsafe_characters_is_rejected(raw: str) -> None:
    with pytest.raises(InvalidParameterError):
        normalize_version(raw)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Linux", "linux"),
        ("Darwin", "macos"),
        ("macOS", "macos"),
        ("Windows", "windows"),
        ("win32", "windows"),
    ],
)
def test_os_synonyms_map_to_canonical_names(raw: str, expected: str) -> None:
    assert normalize_os(raw) == expected


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("amd64", "x86_64"),
        ("X64", "x86_64"),
        ("x86_64", "x86_64"),
        ("aarch64", "arm64"),
        ("ARM64", "arm64"),
    ],
)
def test_arch_synonyms_map_to_canonical_names(raw: str, expected: str) -> None:
    assert normalize_arch(raw) == expected


def test_unknown_platform_values_are_rejected() -> None:
    with pytest.raises(InvalidParameterError):
        normalize_os("plan9")
    with pytest.raises(InvalidParameterError):
        normalize_arch("riscv64")


def test_toolchain_defaults_to_stable() -> None:
    assert normalize_toolchain(None) == "stable"
    assert normalize_toolchain("") == "stable"
    assert normalize_toolchain("Nightly-2024-05-01") == "nightly-2024-05-01"
    with pytest.raises(InvalidParameterError):
        normalize_toolchain("1.80 beta")


def test_save_policy_accepts_hyphenated_spelling() -> None:
    assert normalize_save_policy("on-success") == "on_success"
    assert normalize_save_policy("ALWAYS") == "always"
    with pytest.raises(InvalidParameterError):
        normalize_save_policy("sometimes")


def test_build_request_normalizes_everything() -> None:
    request = build_request(version="v3.4.0", os_name="Darwin", arch="aarch64")

    assert request.tool_version == "3.4.0"
    assert request.tag == "v3.4.0"
    assert request.os == "macos"
    assert request.arch == "arm64"
    assert request.toolchain_version == "stable"
    assert request.cache_save_policy == "on_success"
    assert request.run_audit is True
    assert request.audit_deny_warnings is False
