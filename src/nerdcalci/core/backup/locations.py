"""Backup archives stored in a local directory."""

import os
from collections.abc import Callable
from pathlib import Path
from typing import IO

from loguru import logger

from nerdcalci.config import BACKUP_FILE_SUFFIX
from nerdcalci.errors import StorageError
from nerdcalci.models.document import BackupInfo, BackupSource


class LocalBackupFolder:
    """Writes, lists and prunes ``.zip`` archives in one directory.

    Archives are written under a hidden temporary name and renamed into
    place once complete, so a failed backup never leaves a partial file
    that looks like a real one.

    Args:
        directory: Where archives live.
        source: Which storage this folder represents.
        create: Create the directory when missing. When False a missing
            directory is an error, as for a custom folder that went away.
    """

    def __init__(self, directory: str | Path, source: BackupSource, *, create: bool) -> None:
        self.directory = Path(directory).expanduser()
        self.source = source
        self._create = create

    def _ensure_ready(self) -> None:
        if self.directory.is_dir():
            return
        if not self._create:
            msg = f"Backup folder unavailable: {self.directory}"
            raise StorageError(msg)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Cannot create backup folder {self.directory}: {e}"
            raise StorageError(msg) from e

    def make_unique_name(self, stem: str) -> str:
        """Append ``-N`` to ``stem`` until no archive with that name exists."""
        name = stem
        count = 0
        while (self.directory / f"{name}{BACKUP_FILE_SUFFIX}").exists():
            count += 1
            name = f"{stem}-{count}"
        return f"{name}{BACKUP_FILE_SUFFIX}"

    def write_backup(
        self,
        stem: str,
        write: Callable[[IO[bytes]], int],
        *,
        mtime: float,
    ) -> tuple[str | None, int]:
        self._ensure_ready()
        final = self.directory / self.make_unique_name(stem)
        temporary = self.directory / f".{final.name}.tmp"
        try:
            with open(temporary, "wb") as f:
                count = write(f)
            if count == 0:
                temporary.unlink()
                return None, 0
            os.replace(temporary, final)
            os.utime(final, (mtime, mtime))
        except OSError as e:
            temporary.unlink(missing_ok=True)
            msg = f"Cannot write backup to {self.directory}: {e}"
            raise StorageError(msg) from e
        except BaseException:
            temporary.unlink(missing_ok=True)
            raise
        logger.debug("Wrote backup {}", final)
        return str(final), count

    def _archives(self) -> list[tuple[int, Path]]:
        try:
            entries = [
                (entry.stat().st_mtime_ns // 1_000_000, entry)
                for entry in self.directory.iterdir()
                if entry.is_file()
                and entry.name.endswith(BACKUP_FILE_SUFFIX)
                and not entry.name.startswith(".")
            ]
        except FileNotFoundError:
            return []
        except OSError as e:
            msg = f"Cannot list backups in {self.directory}: {e}"
            raise StorageError(msg) from e
        # Newest first.
        entries.sort(key=lambda item: (item[0], item[1].name), reverse=True)
        return entries

    def list_backups(self) -> list[BackupInfo]:
        return [
            BackupInfo(
                id=f"{self.source.value}:{path.resolve()}",
                display_name=path.name,
                last_modified=modified,
                source=self.source,
                path=str(path.resolve()),
            )
            for modified, path in self._archives()
        ]

    def prune(self, keep: int) -> list[str]:
        removed: list[str] = []
        for _modified, path in self._archives()[max(keep, 1) :]:
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                msg = f"Cannot delete old backup {path}: {e}"
                raise StorageError(msg) from e
            removed.append(str(path))
        if removed:
            logger.debug("Pruned {} old backup(s) from {}", len(removed), self.directory)
        return removed
