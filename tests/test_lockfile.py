from pathlib import Path

import pytest

from leo_setup.errors import LockfileError
from leo_setup.lockfile import read_cargo_lock


def test_read_cargo_lock_counts_packages(tmp_path: Path) -> None:
    (tmp_path / "Cargo.lock").write_text(
        'version = 4\n\n[[package]]\nname = "a"\nversion = "1.0.0"\n\n'
        '[[package]]\nname = "b"\nversion = "2.0.0"\n\n'
        '[[package]]\nname = "c"\nversion = "3.0.0"\n',
        encoding="utf-8",
    )

    lock = read_cargo_lock(tmp_path)

    assert lock.version == 4
    assert lock.packages == 3
    assert lock.path == tmp_path / "Cargo.lock"


def test_missing_cargo_lock_is_a_lockfile_error(tmp_path: Path) -> None:
    with pytest.raises(LockfileError) as excinfo:
        read_cargo_lock(tmp_path)

    assert excinfo.value.code == "E_LOCKFILE"
    assert excinfo.value.stage == "lockfile"


def test_invalid_cargo_lock_is_a_lockfile_error(tmp_path: Path) -> None:
    (tmp_path / "Cargo.lock").write_text("[[package]\nname=", encoding="utf-8")

    with pytest.raises(LockfileError):
        read_cargo_lock(tmp_path)


def test_empty_cargo_lock_has_no_packages(tmp_path: Path) -> None:
    (tmp_path / "Cargo.lock").write_text("version = 3\n", encoding="utf-8")

    assert read_cargo_lock(tmp_path).packages == 0


def test_undecodable_cargo_lock_is_a_lockfile_error(tmp_path: Path) -> None:
    (tmp_path / "Cargo.lock").write_bytes(b"\xff\xfe version = 3")

    with pytest.raises(LockfileError) as excinfo:
        read_cargo_lock(tmp_path)

    assert excinfo.value.stage == "lockfile"
    assert "UTF-8" in str(excinfo.value)


def test_cargo_lock_directory_is_a_lockfile_error(tmp_path: Path) -> None:
    (tmp_path / "Cargo.lock").mkdir()

    with pytest.raises(LockfileError) as excinfo:
        read_cargo_lock(tmp_path)

    assert excinfo.value.stage == "lockfile"
