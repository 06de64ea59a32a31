"""Configuration constants for nerdcalci."""

from pathlib import Path

# Database file inside the data directory.
DATABASE_NAME: str = "calci.db"

# Document management
MAX_FILE_NAME_LENGTH: int = 50
MAX_PINNED_FILES: int = 10

# Undo/redo depth per document
MAX_HISTORY_SIZE: int = 30

# Export/import
EXPORT_FILE_EXTENSION: str = ".nerdcalci"

# Backups
BACKUP_DIR_NAME: str = "backups"
BACKUP_FILE_PREFIX: str = "nerdcalci_backup_"
BACKUP_FILE_SUFFIX: str = ".zip"
DEFAULT_BACKUP_KEEP_COUNT: int = 7

# Directory with data. First directory which is found is used.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/nerdcalci").expanduser(),
    Path("~/.nerdcalci").expanduser(),
    Path("~/.config/nerdcalci").expanduser(),
]


def resolve_data_directory() -> Path:
    """Return the first existing data directory, or the preferred one if none exists."""
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]
