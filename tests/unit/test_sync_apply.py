from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

import pytest

from treesync.core.errors import CopyError
from treesync.core.folder.sync import FolderSync, SyncOptions, resolve_relative
from treesync.core.models import ApplyAction, ComparisonReport, Difference, DifferenceKind


def _write(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def _report(source: Path, destination: Path, differences: list[Difference]) -> ComparisonReport:
    return ComparisonReport(
        source=str(source),
        destination=str(destination),
        timestamp=datetime.now().astimezone(),
        differences=differences,
    )


def _missing(rel_path: str, size: int = 0) -> Difference:
    return Difference(DifferenceKind.MISSING_IN_DESTINATION, rel_path, source_size=size)


def test_plan_contains_only_missing_files_in_report_order(tmp_path: Path) -> None:
    report = _report(tmp_path / "s", tmp_path / "d", [
        _missing("b.txt", 2),
        Difference(DifferenceKind.SIZE_MISMATCH, "size.txt", source_size=1, destination_size=2),
        Difference(DifferenceKind.EXTRA_IN_DESTINATION, "extra.txt", destination_size=1),
        _missing("a/c.txt", 3),
        Difference(DifferenceKind.CONTENT_MISMATCH, "hash.txt", source_digest="1", destination_digest="2"),
    ])

    plan = FolderSync().create_plan(report)

    assert [item.relative_path for item in plan.items] == ["b.txt", "a/c.txt"]
    assert plan.total_bytes == 5


def test_copies_missing_files_creating_directories(tmp_path: Path) -> None:
    source, destination = tmp_path / "s", tmp_path / "d"
    _write(source / "a.txt", b"hello")
    _write(source / "deep" / "er" / "b.txt", b"world!")
    destination.mkdir()

    result = FolderSync().apply(_report(source, destination, [_missing("a.txt", 5), _missing("deep/er/b.txt", 6)]))

    assert result.success
    assert (result.candidates, result.copied, result.skipped, result.failed) == (2, 2, 0, 0)
    assert result.bytes_copied == 11
    assert (destination / "a.txt").read_bytes() == b"hello"
    assert (destination / "deep" / "er" / "b.txt").read_bytes() == b"world!"


def test_copy_overwrites_existing_destination_and_keeps_mtime(tmp_path: Path) -> None:
    source, destination = tmp_path / "s", tmp_path / "d"
    _write(source / "a.txt", b"new")
    _write(destination / "a.txt", b"stale content")
    os.utime(source / "a.txt", (1_000_000_000, 1_000_000_000))

    result = FolderSync().apply(_report(source, destination, [_missing("a.txt", 3)]))

    assert result.copied == 1
    assert (destination / "a.txt").read_bytes() == b"new"
    assert int((destination / "a.txt").stat().st_mtime) == 1_000_000_000


def test_vanished_source_is_skipped_not_failed(tmp_path: Path) -> None:
    source, destination = tmp_path / "s", tmp_path / "d"
    source.mkdir()
    _write(source / "present.txt", b"p")
    actions = []

    result = FolderSync().apply(
        _report(source, destination, [_missing("gone.txt"), _missing("present.txt", 1)]),
        lambda p: actions.append(p.action),
    )

    assert result.success
    assert (result.candidates, result.copied, result.skipped, result.failed) == (2, 1, 1, 0)
    assert result.skipped_paths == ["gone.txt"]
    assert actions == [ApplyAction.SKIPPED, ApplyAction.COPIED]


def test_dry_run_changes_nothing(tmp_path: Path) -> None:
    source, destination = tmp_path / "s", tmp_path / "d"
    _write(source / "sub" / "a.txt", b"a")
    _write(source / "b.txt", b"b")

    sync = FolderSync(SyncOptions(preview_only=True))
    result = sync.apply(_report(source, destination, [_missing("sub/a.txt"), _missing("b.txt"), _missing("x.txt")]))

    assert result.dry_run
    assert (result.candidates, result.copied, result.skipped, result.failed) == (3, 2, 1, 0)
    assert not destination.exists()
    assert result.summary.startswith("Candidates: 3, Would copy: 2")


def test_nothing_to_copy_succeeds(tmp_path: Path) -> None:
    report = _report(tmp_path, tmp_path, [
        Difference(DifferenceKind.EXTRA_IN_DESTINATION, "extra.txt", destination_size=1),
    ])

    result = FolderSync().apply(report)

    assert result.success
    assert result.candidates == 0


def test_copy_failure_is_counted_and_processing_continues(tmp_path: Path) -> None:
    source, destination = tmp_path / "s", tmp_path / "d"
    _write(source / "blocked" / "a.txt", b"a")
    _write(source / "ok.txt", b"ok")
    # A file where a directory is needed makes mkdir fail
    _write(destination / "blocked", b"not a directory")

    result = FolderSync().apply(_report(source, destination, [_missing("blocked/a.txt"), _missing("ok.txt")]))

    assert not result.success
    assert (result.copied, result.skipped, result.failed) == (1, 0, 1)
    assert result.errors[0][0] == "blocked/a.txt"
    assert (destination / "ok.txt").read_bytes() == b"ok"


@pytest.mark.parametrize("rel_path", ["../escape.txt", "/etc/passwd", "a/../../b", "", "a\\b"])
def test_unsafe_relative_paths_are_rejected(tmp_path: Path, rel_path: str) -> None:
    with pytest.raises(CopyError):
        resolve_relative(tmp_path, rel_path)


def test_unsafe_report_entry_counts_as_error(tmp_path: Path) -> None:
    source, destination = tmp_path / "s", tmp_path / "d"
    _write(tmp_path / "escape.txt", b"secret")
    source.mkdir()

    result = FolderSync().apply(_report(source, destination, [_missing("../escape.txt")]))

    assert result.failed == 1
    assert not (tmp_path / "d").exists()


def test_failed_copy_leaves_existing_destination_intact(tmp_path: Path, monkeypatch) -> None:
    source, destination = tmp_path / "s", tmp_path / "d"
    _write(source / "a.txt", b"new content that never lands")
    _write(destination / "a.txt", b"stale")

    def fail_copymode(src, dst, **kwargs):
        raise OSError(5, "Input/output error")

    monkeypatch.setattr("treesync.core.folder.sync.shutil.copymode", fail_copymode)

    result = FolderSync(SyncOptions(buffer_size=4)).apply(_report(source, destination, [_missing("a.txt")]))

    assert result.failed == 1
    assert "Input/output error" in result.errors[0][1]
    assert (destination / "a.txt").read_bytes() == b"stale"
    assert [p.name for p in destination.iterdir()] == ["a.txt"]
