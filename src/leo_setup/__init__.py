"""Install the Leo compiler from source with a two-tier build cache."""

from .cache import CacheKey, CacheKeySet, LocalCacheStore, build_cache_keys
from .errors import (
    AuditFailedError,
    BuildError,
    CacheRestoreError,
    CacheSaveError,
    CloneError,
    InvalidParameterError,
    LeoSetupError,
    LockfileError,
    TagMismatchError,
    ToolchainError,
)
from .installer import Installer, should_save
from .models import (
    CacheOutcome,
    InstallLayout,
    InstallRequest,
    InstallResult,
    VerificationReport,
    recommend,
)
from .normalize import build_request
from .verify import ReleaseVerifier

__all__ = [
    "AuditFailedError",
    "BuildError",
    "CacheKey",
    "CacheKeySet",
    "CacheOutcome",
    "CacheRestoreError",
    "CacheSaveError",
    "CloneError",
    "InstallLayout",
    "InstallRequest",
    "InstallResult",
    "Installer",
    "InvalidParameterError",
    "LeoSetupError",
    "LocalCacheStore",
    "LockfileError",
    "ReleaseVerifier",
    "TagMismatchError",
    "ToolchainError",
    "VerificationReport",
    "build_cache_keys",
    "build_request",
    "recommend",
    "should_save",
]
