"""Line-oriented calculation notebook with undo history and archive backups."""

from nerdcalci.core.backup.manager import BackupManager, BackupResult, BackupStatus
from nerdcalci.core.database.store import DocumentStore
from nerdcalci.core.engine.pipeline import evaluate_expressions, evaluate_lines
from nerdcalci.core.history import HistoryStore
from nerdcalci.protocols import BackupFolderProtocol
from nerdcalci.workspace import Workspace

__all__ = [
    "BackupFolderProtocol",
    "BackupManager",
    "BackupResult",
    "BackupStatus",
    "DocumentStore",
    "HistoryStore",
    "Workspace",
    "evaluate_expressions",
    "evaluate_lines",
]
