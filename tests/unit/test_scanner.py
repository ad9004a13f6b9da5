from __future__ import annotations

import errno
import os
from pathlib import Path

import pytest

from treesync.core.errors import EnumerationError
from treesync.core.folder.scanner import FolderScanner, ScanOptions, canonical_relative_path


def _write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def test_indexes_nested_files_with_slash_separated_keys(tmp_path: Path) -> None:
    _write(tmp_path / "top.txt", b"12345")
    _write(tmp_path / "sub" / "deeper" / "leaf.bin", b"\x00" * 10)

    index = FolderScanner().scan(tmp_path)

    assert set(index.files) == {"top.txt", "sub/deeper/leaf.bin"}
    assert index.files["top.txt"].size == 5
    assert index.files["sub/deeper/leaf.bin"].size == 10
    assert index.files["sub/deeper/leaf.bin"].absolute_path == tmp_path.resolve() / "sub" / "deeper" / "leaf.bin"
    assert index.total_size == 15
    assert index.file_count == 2


def test_directories_are_not_indexed(tmp_path: Path) -> None:
    (tmp_path / "empty" / "nested").mkdir(parents=True)

    index = FolderScanner().scan(tmp_path)

    assert index.file_count == 0


def test_hidden_files_are_indexed(tmp_path: Path) -> None:
    _write(tmp_path / ".env", b"x")
    _write(tmp_path / ".cache" / "item", b"yy")

    index = FolderScanner().scan(tmp_path)

    assert set(index.files) == {".env", ".cache/item"}


def test_missing_root_raises_enumeration_error(tmp_path: Path) -> None:
    with pytest.raises(EnumerationError, match="not found"):
        FolderScanner().scan(tmp_path / "nope")


def test_file_root_raises_enumeration_error(tmp_path: Path) -> None:
    _write(tmp_path / "file.txt", b"abc")

    with pytest.raises(EnumerationError, match="Not a directory"):
        FolderScanner().scan(tmp_path / "file.txt")


@pytest.mark.skipif(not hasattr(os, "geteuid") or os.geteuid() == 0, reason="needs an unprivileged user")
def test_unreadable_subdirectory_aborts_scan(tmp_path: Path) -> None:
    _write(tmp_path / "ok.txt", b"a")
    locked = tmp_path / "locked"
    _write(locked / "secret.txt", b"b")
    locked.chmod(0)
    try:
        with pytest.raises(EnumerationError):
            FolderScanner().scan(tmp_path)
    finally:
        locked.chmod(0o755)


def test_listing_failure_in_subdirectory_aborts_scan(tmp_path: Path, monkeypatch) -> None:
    _write(tmp_path / "ok.txt", b"a")
    _write(tmp_path / "locked" / "secret.txt", b"b")
    real_scandir = os.scandir

    def scandir(path="."):
        if Path(path).name == "locked":
            raise PermissionError(errno.EACCES, "Permission denied", str(path))
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", scandir)

    with pytest.raises(EnumerationError, match="Permission denied") as excinfo:
        FolderScanner().scan(tmp_path)

    assert Path(excinfo.value.path).name == "locked"


def test_symlinks_are_skipped_by_default(tmp_path: Path) -> None:
    root = tmp_path / "root"
    outside = tmp_path / "outside"
    _write(root / "real.txt", b"real")
    _write(outside / "linked.txt", b"linked")
    (root / "file_link.txt").symlink_to(outside / "linked.txt")
    (root / "dir_link").symlink_to(outside, target_is_directory=True)

    index = FolderScanner().scan(root)

    assert set(index.files) == {"real.txt"}


def test_symlinks_are_followed_when_enabled(tmp_path: Path) -> None:
    root = tmp_path / "root"
    outside = tmp_path / "outside"
    _write(root / "real.txt", b"real")
    _write(outside / "linked.txt", b"linked")
    (root / "file_link.txt").symlink_to(outside / "linked.txt")
    (root / "dir_link").symlink_to(outside, target_is_directory=True)
    (root / "broken").symlink_to(tmp_path / "does-not-exist")

    index = FolderScanner(ScanOptions(follow_symlinks=True)).scan(root)

    assert set(index.files) == {"real.txt", "file_link.txt", "dir_link/linked.txt"}
    assert index.files["file_link.txt"].size == 6


def test_symlink_cycle_is_not_followed_forever(tmp_path: Path) -> None:
    _write(tmp_path / "a" / "file.txt", b"x")
    (tmp_path / "a" / "loop").symlink_to(tmp_path / "a", target_is_directory=True)

    index = FolderScanner(ScanOptions(follow_symlinks=True)).scan(tmp_path)

    assert "a/file.txt" in index.files
    assert all(key.count("loop") <= 1 for key in index.files)


def test_exclude_patterns_prune_files_and_directories(tmp_path: Path) -> None:
    _write(tmp_path / "keep.txt", b"k")
    _write(tmp_path / "skip.log", b"s")
    _write(tmp_path / "build" / "out.o", b"o")
    _write(tmp_path / "src" / "build.py", b"p")

    options = ScanOptions(exclude_patterns=["*.log", "build/"])
    index = FolderScanner(options).scan(tmp_path)

    assert set(index.files) == {"keep.txt", "src/build.py"}


def test_scan_order_is_stable(tmp_path: Path) -> None:
    for name in ["zeta.txt", "alpha.txt", "m/one.txt", "b/two.txt"]:
        _write(tmp_path / name, b"1")

    scanner = FolderScanner()
    first = list(scanner.scan(tmp_path).files)
    second = list(scanner.scan(tmp_path).files)

    assert first == second
    assert first == ["alpha.txt", "zeta.txt", "b/two.txt", "m/one.txt"]


def test_relative_paths_are_nfc_normalized(tmp_path: Path) -> None:
    decomposed = "cafe\u0301.txt"
    _write(tmp_path / decomposed, b"coffee")

    index = FolderScanner().scan(tmp_path)

    assert list(index.files) == ["caf\u00e9.txt"]


def test_canonical_relative_path_uses_forward_slashes() -> None:
    assert canonical_relative_path(Path("a") / "b" / "c.txt") == "a/b/c.txt"
