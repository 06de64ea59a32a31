"""Back up, list, restore, export and import document archives."""

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path

from loguru import logger

from nerdcalci.config import BACKUP_FILE_PREFIX
from nerdcalci.core.archive.codec import read_archive, write_archive
from nerdcalci.core.backup.locations import LocalBackupFolder
from nerdcalci.core.backup.settings import (
    BackupLocationMode,
    BackupSettings,
    read_settings,
    set_last_backup_at,
)
from nerdcalci.core.database.store import DocumentStore
from nerdcalci.errors import StorageError
from nerdcalci.models.document import BackupInfo, BackupSource
from nerdcalci.protocols import BackupFolderProtocol

FolderFactory = Callable[[str], BackupFolderProtocol]

FALLBACK_MESSAGE = "Custom folder unavailable. Saved backup in app storage instead."
NOTHING_TO_BACK_UP_MESSAGE = "No files to back up"


class BackupStatus(str, Enum):
    BACKED_UP = "backed_up"
    USED_FALLBACK = "used_fallback"
    NOTHING_TO_BACK_UP = "nothing_to_back_up"


@dataclass(frozen=True)
class BackupResult:
    """Outcome of a single backup attempt."""

    status: BackupStatus
    exported_count: int = 0
    path: str | None = None
    removed: tuple[str, ...] = ()

    @property
    def message(self) -> str:
        if self.status is BackupStatus.NOTHING_TO_BACK_UP:
            return NOTHING_TO_BACK_UP_MESSAGE
        if self.status is BackupStatus.USED_FALLBACK:
            return FALLBACK_MESSAGE
        return f"Backed up {self.exported_count} file(s)"


def backup_file_stem(timestamp: float) -> str:
    """``nerdcalci_backup_YYYY-MM-DD-HH-MM-SS`` in local time."""
    return f"{BACKUP_FILE_PREFIX}{datetime.fromtimestamp(timestamp):%Y-%m-%d-%H-%M-%S}"


def _custom_folder(path: str) -> BackupFolderProtocol:
    return LocalBackupFolder(path, BackupSource.CUSTOM_FOLDER, create=False)


class BackupManager:
    """Writes whole-store archives to the configured backup location.

    Args:
        store: Documents to back up and restore into.
        app_backup_dir: Directory used for app storage backups and as the
            fallback when the custom folder cannot be written.
        clock: Returns the current time in epoch seconds.
        custom_folder_factory: Builds the folder for a configured custom
            location.
    """

    def __init__(
        self,
        store: DocumentStore,
        app_backup_dir: str | Path,
        *,
        clock: Callable[[], float] = time.time,
        custom_folder_factory: FolderFactory = _custom_folder,
    ) -> None:
        self.store = store
        self.app_folder: BackupFolderProtocol = LocalBackupFolder(
            app_backup_dir, BackupSource.APP_STORAGE, create=True
        )
        self._clock = clock
        self._custom_folder_factory = custom_folder_factory

    def settings(self) -> BackupSettings:
        return read_settings(self.store)

    def now(self) -> float:
        return self._clock()

    def _write_to(
        self, folder: BackupFolderProtocol, settings: BackupSettings, now: float
    ) -> BackupResult:
        path, count = folder.write_backup(
            backup_file_stem(now),
            lambda sink: write_archive(self.store, sink),
            mtime=now,
        )
        if path is None:
            return BackupResult(status=BackupStatus.NOTHING_TO_BACK_UP)
        removed = folder.prune(settings.keep_latest_count)
        return BackupResult(
            status=BackupStatus.BACKED_UP,
            exported_count=count,
            path=path,
            removed=tuple(removed),
        )

    def backup_now(self) -> BackupResult:
        """Write a backup to the configured location.

        When a custom folder is configured but cannot be written, the
        backup goes to app storage instead and the result says so.

        Raises:
            StorageError: App storage could not be written either.
        """
        settings = self.settings()
        now = self.now()

        if settings.uses_custom_folder and settings.custom_folder is not None:
            try:
                result = self._write_to(
                    self._custom_folder_factory(settings.custom_folder), settings, now
                )
            except StorageError:
                logger.opt(exception=True).warning(
                    "Custom backup folder {} unavailable, using app storage",
                    settings.custom_folder,
                )
                result = self._write_to(self.app_folder, settings, now)
                if result.status is BackupStatus.BACKED_UP:
                    result = BackupResult(
                        status=BackupStatus.USED_FALLBACK,
                        exported_count=result.exported_count,
                        path=result.path,
                        removed=result.removed,
                    )
        else:
            result = self._write_to(self.app_folder, settings, now)

        if result.status is BackupStatus.NOTHING_TO_BACK_UP:
            logger.info(NOTHING_TO_BACK_UP_MESSAGE)
            return result

        set_last_backup_at(self.store, int(now * 1000))
        logger.info("Backed up {} document(s) to {}", result.exported_count, result.path)
        return result

    def list_backups(self) -> list[BackupInfo]:
        """Backups in the configured location, newest first."""
        settings = self.settings()
        if settings.location_mode is BackupLocationMode.CUSTOM_FOLDER:
            if not settings.uses_custom_folder or settings.custom_folder is None:
                return []
            try:
                backups = self._custom_folder_factory(settings.custom_folder).list_backups()
            except StorageError:
                logger.opt(exception=True).warning("Cannot list custom backup folder")
                return []
        else:
            backups = self.app_folder.list_backups()
        return sorted(backups, key=lambda info: info.last_modified, reverse=True)

    def restore_from_backup(self, backup: BackupInfo) -> int:
        """Import every document of a backup archive. Returns the count restored."""
        count = read_archive(self.store, backup.path)
        logger.info("Restored {} file(s) from {}", count, backup.display_name)
        return count

    def export_archive(self, path: str | Path) -> int:
        """Write all documents to an archive at ``path``.

        Raises:
            StorageError: There are no documents, or the file cannot be written.
        """
        if self.store.count_documents() == 0:
            msg = "No files to export"
            raise StorageError(msg)
        count = write_archive(self.store, path)
        logger.info("Exported {} file(s) to {}", count, path)
        return count

    def import_archive(self, path: str | Path) -> int:
        count = read_archive(self.store, path)
        logger.info("Imported {} file(s) from {}", count, path)
        return count
