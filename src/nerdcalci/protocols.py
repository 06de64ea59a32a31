"""Protocols for dependency injection in the backup orchestrator."""

from collections.abc import Callable
from typing import IO, Protocol, runtime_checkable

from nerdcalci.models.document import BackupInfo, BackupSource


@runtime_checkable
class BackupFolderProtocol(Protocol):
    """A place backup archives are written to and listed from."""

    source: BackupSource

    def write_backup(
        self,
        stem: str,
        write: Callable[[IO[bytes]], int],
        *,
        mtime: float,
    ) -> tuple[str | None, int]:
        """Write a new archive through ``write``, which returns the document count.

        Returns the archive path and the count, or ``(None, 0)`` when
        nothing was written and no archive was kept.
        """
        ...

    def list_backups(self) -> list[BackupInfo]:
        """Return the archives in this folder, newest first."""
        ...

    def prune(self, keep: int) -> list[str]:
        """Delete all but the ``keep`` newest archives and return the removed paths."""
        ...
