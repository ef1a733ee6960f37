"""Artifact cache service protocol and a local directory-backed store."""

from __future__ import annotations

import hashlib
import json
import os
import shutil
import tempfile
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from leo_setup.errors import CacheRestoreError, CacheSaveError


@dataclass(frozen=True, slots=True)
class CacheRestoreResult:
    hit: bool
    matched_key: str | None = None


@dataclass(frozen=True, slots=True)
class CacheSaveResult:
    ok: bool
    key: str


class ArtifactCache(Protocol):
    def restore(
        self,
        key: str,
        fallback_keys: Sequence[str],
        paths: Sequence[Path],
    ) -> CacheRestoreResult:
        """Restore *paths* from *key*, else from the first fallback prefix that matches."""

    def save(self, key: str, paths: Sequence[Path]) -> CacheSaveResult:
        """Store the existing *paths* under *key*, replacing any previous entry."""


class LocalCacheStore:
    """Key-value cache kept in a local directory, one entry per key.

    Every entry holds a ``manifest.json`` recording, for each stored file, the
    position of its root in the saved path list, its location under that root,
    and its sha256. A restore maps each stored root onto the path at the same
    position in the request and verifies digests before copying.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def restore(
        self,
        key: str,
        fallback_keys: Sequence[str],
        paths: Sequence[Path],
    ) -> CacheRestoreResult:
        matched = self._lookup(key, fallback_keys)
        if matched is None:
            return CacheRestoreResult(hit=False)

        entry = self.root / matched
        manifest = self._read_manifest(entry / "manifest.json")
        targets = [Path(path) for path in paths]
        files = manifest.get("files", [])
        if not isinstance(files, list):
            raise CacheRestoreError(
                "Cache manifest has invalid structure.",
                hint="Delete the cache entry and rebuild.",
                context={"stage": "cache_restore", "key": matched},
            )

        for item in files:
            try:
                index = int(item["root"])
                slot, relative, expected = str(item["slot"]), str(item["path"]), str(item["sha256"])
            except (KeyError, TypeError, ValueError) as exc:
                raise CacheRestoreError(
                    "Cache manifest has an invalid file record.",
                    hint="Delete the cache entry and rebuild.",
                    context={"stage": "cache_restore", "key": matched},
                ) from exc
            if not 0 <= index < len(targets):
                continue
            stored = entry / "data" / slot
            target = targets[index] / relative if relative else targets[index]
            try:
                actual = _sha256(stored)
            except OSError as exc:
                raise CacheRestoreError(
                    "Cached file is missing or unreadable.",
                    hint="Delete the cache entry and rebuild.",
                    context={"stage": "cache_restore", "key": matched, "slot": slot},
                ) from exc
            if actual != expected:
                raise CacheRestoreError(
                    "Cache artifact digest mismatch.",
                    hint="Delete the cache entry and rebuild.",
                    context={
                        "stage": "cache_restore",
                        "key": matched,
                        "path": str(target),
                        "expected": expected,
                        "actual": actual,
                    },
                )
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(stored, target)
            except OSError as exc:
                raise CacheRestoreError(
                    "Unable to restore cached file.",
                    context={"stage": "cache_restore", "key": matched, "path": str(target)},
                ) from exc

        return CacheRestoreResult(hit=matched == key, matched_key=matched)

    def save(self, key: str, paths: Sequence[Path]) -> CacheSaveResult:
        entry = self.root / key
        staging: Path | None = None
        try:
            staging = Path(tempfile.mkdtemp(prefix=".save-", dir=str(self.root)))
            files = self._stage(staging / "data", paths)
            manifest = {
                "key": key,
                "saved_at_ns": time.time_ns(),
                "files": files,
            }
            (staging / "manifest.json").write_text(
                json.dumps(manifest, indent=2, sort_keys=True) + "\n",
                encoding="utf-8",
            )
            if entry.exists():
                shutil.rmtree(entry)
            os.replace(staging, entry)
        except OSError as exc:
            raise CacheSaveError(
                "Unable to write cache entry.",
                hint="Check free space and permissions of the cache directory.",
                context={"stage": "cache_save", "key": key, "error": str(exc)},
            ) from exc
        finally:
            if staging is not None and staging.exists():
                shutil.rmtree(staging, ignore_errors=True)
        return CacheSaveResult(ok=True, key=key)

    def _lookup(self, key: str, fallback_keys: Sequence[str]) -> str | None:
        if (self.root / key / "manifest.json").exists():
            return key
        for prefix in fallback_keys:
            candidates = [
                entry
                for entry in self.root.iterdir()
                if entry.name.startswith(prefix) and (entry / "manifest.json").exists()
            ]
            if candidates:
                newest = max(candidates, key=self._saved_at)
                return newest.name
        return None

    def _saved_at(self, entry: Path) -> int:
        value = self._read_manifest(entry / "manifest.json").get("saved_at_ns", 0)
        return value if isinstance(value, int) else 0

    def _stage(self, data_dir: Path, paths: Sequence[Path]) -> list[dict[str, str]]:
        files: list[dict[str, str]] = []
        for index, root in enumerate(Path(path) for path in paths):
            if not root.exists():
                continue
            sources = [root] if root.is_file() else sorted(p for p in root.rglob("*") if p.is_file())
            for source in sources:
                slot = str(len(files))
                destination = data_dir / slot
                destination.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, destination)
                files.append(
                    {
                        "slot": slot,
                        "root": str(index),
                        "path": "" if source == root else source.relative_to(root).as_posix(),
                        "sha256": _sha256(destination),
                    }
                )
        return files

    def _read_manifest(self, path: Path) -> dict[str, object]:
        try:
            parsed = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise CacheRestoreError(
                "Cache manifest is not readable JSON.",
                hint="Delete the cache entry and rebuild.",
                context={"stage": "cache_restore", "path": str(path)},
            ) from exc
        if not isinstance(parsed, dict):
            raise CacheRestoreError(
                "Cache manifest has invalid structure.",
                hint="Delete the cache entry and rebuild.",
                context={"stage": "cache_restore", "path": str(path)},
            )
        return parsed


def _sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(1 << 20), b""):
            digest.update(chunk)
    return digest.hexdigest()
