"""Cache key derivation."""

from __future__ import annotations

from dataclasses import dataclass

from leo_setup.errors import InvalidParameterError
from leo_setup.models import InstallRequest

MAX_KEY_LENGTH = 512
BINARY_PREFIX = "leo-binary"
DEPENDENCY_PREFIX = "leo-cargo"


@dataclass(frozen=True, slots=True)
class CacheKey:
    """A cache key made of a fixed prefix and ordered qualifiers."""

    prefix: str
    qualifiers: tuple[str, ...]

    def __str__(self) -> str:
        return "-".join((self.prefix, *self.qualifiers)).lower()

    def relaxed(self, keep: int) -> str:
        """Return the lookup prefix that keeps only the first *keep* qualifiers."""
        return "-".join((self.prefix, *self.qualifiers[:keep])).lower() + "-"


@dataclass(frozen=True, slots=True)
class CacheKeySet:
    binary: CacheKey
    dependency: CacheKey
    dependency_restore_keys: tuple[str, ...]

    @property
    def binary_key(self) -> str:
        return str(self.binary)

    @property
    def dependency_key(self) -> str:
        return str(self.dependency)

    def to_dict(self) -> dict[str, object]:
        return {
            "binary_key": self.binary_key,
            "dependency_key": self.dependency_key,
            "dependency_restore_keys": list(self.dependency_restore_keys),
        }


def binary_key(request: InstallRequest) -> CacheKey:
    # The built binary does not depend on the toolchain that produced it.
    return CacheKey(BINARY_PREFIX, (f"v{request.tool_version}", request.os, request.arch))


def dependency_key(request: InstallRequest) -> CacheKey:
    return CacheKey(
        DEPENDENCY_PREFIX,
        (f"v{request.tool_version}", request.toolchain_version, request.os, request.arch),
    )


def build_cache_keys(request: InstallRequest) -> CacheKeySet:
    binary = binary_key(request)
    dependency = dependency_key(request)
    restore_keys = (str(dependency), dependency.relaxed(3), dependency.relaxed(1))
    for key in (str(binary), *restore_keys):
        if len(key) > MAX_KEY_LENGTH:
            raise InvalidParameterError(
                "Derived cache key exceeds the cache service key length limit.",
                hint="Shorten the version or toolchain identifier.",
                context={
                    "stage": "cache_keys",
                    "length": str(len(key)),
                    "limit": str(MAX_KEY_LENGTH),
                },
            )
    return CacheKeySet(
        binary=binary,
        dependency=dependency,
        dependency_restore_keys=restore_keys,
    )
