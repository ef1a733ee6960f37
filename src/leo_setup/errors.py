"""Typed error model with stable, machine-readable error codes.

Every error names the pipeline stage it came from in ``context["stage"]``;
the CLI and the verification report use it to say where a run halted.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum
from typing import ClassVar


class ErrorCode(StrEnum):
    """Stable error identifiers used across the CLI and run outputs."""

    INVALID_PARAMETER = "E_INVALID_PARAMETER"
    TAG_MISMATCH = "E_TAG_MISMATCH"
    CLONE = "E_CLONE"
    TOOLCHAIN = "E_TOOLCHAIN"
    BUILD = "E_BUILD"
    AUDIT = "E_AUDIT"
    LOCKFILE = "E_LOCKFILE"
    CACHE = "E_CACHE"


class LeoSetupError(Exception):
    """Base error; subclasses pick the code and whether the run must stop."""

    error_code: ClassVar[ErrorCode]
    fatal: ClassVar[bool] = True

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code: str = self.error_code.value
        self.hint = hint
        self.context: dict[str, str] = dict(context or {})

    @property
    def stage(self) -> str | None:
        return self.context.get("stage")

    def __str__(self) -> str:
        lines = [self.message]
        if self.hint:
            lines.append(f"Hint: {self.hint}")
        lines.extend(f"  {name}: {value}" for name, value in self.context.items() if value)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "stage": self.stage,
            "fatal": self.fatal,
            "message": self.message,
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class InvalidParameterError(LeoSetupError):
    error_code = ErrorCode.INVALID_PARAMETER


class TagMismatchError(LeoSetupError):
    error_code = ErrorCode.TAG_MISMATCH


class CloneError(LeoSetupError):
    error_code = ErrorCode.CLONE


class ToolchainError(LeoSetupError):
    error_code = ErrorCode.TOOLCHAIN


class BuildError(LeoSetupError):
    error_code = ErrorCode.BUILD


class AuditFailedError(LeoSetupError):
    error_code = ErrorCode.AUDIT


class LockfileError(LeoSetupError):
    error_code = ErrorCode.LOCKFILE


class CacheRestoreError(LeoSetupError):
    """Cache lookup failed; callers treat the lookup as a miss."""

    error_code = ErrorCode.CACHE
    fatal = False


class CacheSaveError(LeoSetupError):
    """Cache save failed; callers log it and skip the save."""

    error_code = ErrorCode.CACHE
    fatal = False


__all__ = [
    "AuditFailedError",
    "BuildError",
    "CacheRestoreError",
    "CacheSaveError",
    "CloneError",
    "ErrorCode",
    "InvalidParameterError",
    "LeoSetupError",
    "LockfileError",
    "TagMismatchError",
    "ToolchainError",
]
