from pathlib import Path

import pytest

from leo_setup.errors import (
    AuditFailedError,
    BuildError,
    CacheRestoreError,
    CacheSaveError,
    CloneError,
    ErrorCode,
    InvalidParameterError,
    LockfileError,
    TagMismatchError,
    ToolchainError,
)
from leo_setup.models import CacheOutcome, InstallLayout, run_outputs
from leo_setup.normalize import build_request


def test_error_codes_are_stable_and_machine_readable() -> None:
    errors = [
        InvalidParameterError("bad input"),
        TagMismatchError("moved tag"),
        CloneError("network down"),
        ToolchainError("no rustup"),
        BuildError("compile failed"),
        AuditFailedError("advisories"),
        LockfileError("no lockfile"),
        CacheRestoreError("corrupt"),
        CacheSaveError("quota"),
    ]
    assert [error.code for error in errors] == [
        ErrorCode.INVALID_PARAMETER.value,
        ErrorCode.TAG_MISMATCH.value,
        ErrorCode.CLONE.value,
        ErrorCode.TOOLCHAIN.value,
        ErrorCode.BUILD.value,
        ErrorCode.AUDIT.value,
        ErrorCode.LOCKFILE.value,
        ErrorCode.CACHE.value,
        ErrorCode.CACHE.value,
    ]
    assert [error.fatal for error in errors] == [True] * 7 + [False, False]


def test_error_rendering_includes_hint_and_context() -> None:
    error = BuildError("cargo build failed.", hint="Fix the lockfile.", context={"stage": "build", "empty": ""})

    rendered = str(error)
    payload = error.to_dict()

    assert rendered.splitlines() == ["cargo build failed.", "Hint: Fix the lockfile.", "  stage: build"]
    assert payload["code"] == "E_BUILD"
    assert payload["hint"] == "Fix the lockfile."
    assert payload["stage"] == "build"
    assert payload["fatal"] is True
    assert payload["message"] == "cargo build failed."
    assert error.stage == "build"


def test_cache_outcome_fields_are_recorded_once() -> None:
    outcome = CacheOutcome()
    outcome.record("binary_hit", True)

    with pytest.raises(RuntimeError):
        outcome.record("binary_hit", False)
    with pytest.raises(AttributeError):
        outcome.record("unknown", True)

    assert outcome.binary_hit is True
    assert outcome.to_dict() == {
        "binary_hit": True,
        "dependency_hit": False,
        "build_performed": False,
        "build_duration_seconds": 0.0,
        "saved_binary": False,
        "saved_dependency": False,
    }


def test_run_outputs_use_action_names() -> None:
    request = build_request(version="3.4.0", os_name="linux", arch="x86_64")
    outcome = CacheOutcome()
    outcome.record("binary_hit", False)
    outcome.record("dependency_hit", True)
    outcome.record("build_duration_seconds", 187.6)

    assert run_outputs(request, outcome) == {
        "tool-version-installed": "3.4.0",
        "binary-cache-hit": "false",
        "dependency-cache-hit": "true",
        "build-duration-seconds": "188",
    }


def test_layout_is_rooted_in_working_directory(tmp_path: Path) -> None:
    layout = InstallLayout.from_working_directory(tmp_path, cargo_home=tmp_path / "cargo")

    assert layout.install_dir == tmp_path.resolve() / ".leo-setup" / "bin"
    assert layout.binary_path("linux").name == "leo"
    assert layout.binary_path("windows").name == "leo.exe"
    assert layout.target_dir in layout.dependency_paths()
    assert tmp_path / "cargo" / "registry" / "index" in layout.dependency_paths()


def test_cache_errors_serialize_as_non_fatal() -> None:
    payload = CacheSaveError("quota exceeded", context={"stage": "cache_save"}).to_dict()

    assert payload == {
        "code": "E_CACHE",
        "stage": "cache_save",
        "fatal": False,
        "message": "quota exceeded",
        "context": {"stage": "cache_save"},
    }
