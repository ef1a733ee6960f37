"""Cargo.lock presence and shape checks."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from leo_setup.errors import LockfileError

LOCKFILE_NAME = "Cargo.lock"


@dataclass(frozen=True, slots=True)
class CargoLock:
    path: Path
    version: int | None
    packages: int


def read_cargo_lock(source_dir: str | Path) -> CargoLock:
    lock_path = Path(source_dir) / LOCKFILE_NAME
    try:
        raw = lock_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise LockfileError(
            "Cargo.lock not found.",
            hint="Dependencies are not pinned; refuse this release until upstream ships a lockfile.",
            context={"stage": "lockfile", "path": str(lock_path)},
        ) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise LockfileError(
            "Cargo.lock is not readable UTF-8 text.",
            hint=str(exc),
            context={"stage": "lockfile", "path": str(lock_path)},
        ) from exc

    try:
        payload = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise LockfileError(
            "Cargo.lock is not valid TOML.",
            hint=str(exc),
            context={"stage": "lockfile", "path": str(lock_path)},
        ) from exc

    packages = payload.get("package", [])
    if not isinstance(packages, list):
        raise LockfileError(
            "Invalid Cargo.lock `package` value.",
            context={"stage": "lockfile", "path": str(lock_path)},
        )
    version = payload.get("version")
    return CargoLock(
        path=lock_path,
        version=version if isinstance(version, int) else None,
        packages=len(packages),
    )
