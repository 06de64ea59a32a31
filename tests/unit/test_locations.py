"""Tests for local backup folders."""

import os
from collections.abc import Callable
from pathlib import Path
from typing import IO

import pytest

from nerdcalci.core.backup.locations import LocalBackupFolder
from nerdcalci.errors import StorageError
from nerdcalci.models.document import BackupSource
from nerdcalci.protocols import BackupFolderProtocol


def _writer(count: int) -> Callable[[IO[bytes]], int]:
    def write(sink: IO[bytes]) -> int:
        sink.write(b"data")
        return count

    return write


def test_satisfies_protocol(tmp_path: Path) -> None:
    folder = LocalBackupFolder(tmp_path, BackupSource.APP_STORAGE, create=True)
    assert isinstance(folder, BackupFolderProtocol)


def test_write_backup_creates_directory_and_stamps_mtime(tmp_path: Path) -> None:
    folder = LocalBackupFolder(tmp_path / "backups", BackupSource.APP_STORAGE, create=True)

    path, count = folder.write_backup("nerdcalci_backup_x", _writer(2), mtime=1_600_000_000)

    assert count == 2
    assert path is not None
    assert Path(path).name == "nerdcalci_backup_x.zip"
    assert os.stat(path).st_mtime == 1_600_000_000
    assert [p.name for p in (tmp_path / "backups").iterdir()] == ["nerdcalci_backup_x.zip"]


def test_write_backup_appends_suffix_on_collision(tmp_path: Path) -> None:
    folder = LocalBackupFolder(tmp_path, BackupSource.APP_STORAGE, create=True)
    first, _ = folder.write_backup("b", _writer(1), mtime=1_600_000_000)
    second, _ = folder.write_backup("b", _writer(1), mtime=1_600_000_001)
    third, _ = folder.write_backup("b", _writer(1), mtime=1_600_000_002)
    assert [Path(p).name for p in (first, second, third) if p] == ["b.zip", "b-1.zip", "b-2.zip"]


def test_write_backup_discards_empty_archive(tmp_path: Path) -> None:
    folder = LocalBackupFolder(tmp_path, BackupSource.APP_STORAGE, create=True)
    assert folder.write_backup("b", _writer(0), mtime=1_600_000_000) == (None, 0)
    assert list(tmp_path.iterdir()) == []


def test_write_backup_removes_partial_file_on_failure(tmp_path: Path) -> None:
    folder = LocalBackupFolder(tmp_path, BackupSource.APP_STORAGE, create=True)

    def explode(sink: IO[bytes]) -> int:
        sink.write(b"partial")
        msg = "disk full"
        raise StorageError(msg)

    with pytest.raises(StorageError):
        folder.write_backup("b", explode, mtime=1_600_000_000)
    assert list(tmp_path.iterdir()) == []


def test_missing_custom_folder_is_unavailable(tmp_path: Path) -> None:
    folder = LocalBackupFolder(tmp_path / "gone", BackupSource.CUSTOM_FOLDER, create=False)
    with pytest.raises(StorageError):
        folder.write_backup("b", _writer(1), mtime=1_600_000_000)
    assert folder.list_backups() == []


def test_list_backups_newest_first_ignores_other_files(tmp_path: Path) -> None:
    folder = LocalBackupFolder(tmp_path, BackupSource.CUSTOM_FOLDER, create=False)
    folder.write_backup("older", _writer(1), mtime=1_600_000_000)
    folder.write_backup("newer", _writer(1), mtime=1_600_000_100)
    (tmp_path / "notes.txt").write_text("x")
    (tmp_path / ".partial.zip.tmp").write_bytes(b"x")

    backups = folder.list_backups()

    assert [b.display_name for b in backups] == ["newer.zip", "older.zip"]
    assert backups[0].last_modified == 1_600_000_100_000
    assert backups[0].source is BackupSource.CUSTOM_FOLDER
    assert backups[0].id == f"custom:{backups[0].path}"


def test_prune_keeps_newest(tmp_path: Path) -> None:
    folder = LocalBackupFolder(tmp_path, BackupSource.APP_STORAGE, create=True)
    for i in range(5):
        folder.write_backup(f"b{i}", _writer(1), mtime=1_600_000_000 + i)

    removed = folder.prune(2)

    assert sorted(Path(p).name for p in removed) == ["b0.zip", "b1.zip", "b2.zip"]
    assert sorted(p.name for p in tmp_path.iterdir()) == ["b3.zip", "b4.zip"]
