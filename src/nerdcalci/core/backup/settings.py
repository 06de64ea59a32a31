"""Backup settings persisted as metadata rows."""

from dataclasses import dataclass
from enum import Enum

from nerdcalci.config import DEFAULT_BACKUP_KEEP_COUNT
from nerdcalci.core.database.store import DocumentStore

KEY_ENABLED = "auto_backup_enabled"
KEY_FREQUENCY = "auto_backup_frequency"
KEY_LOCATION_MODE = "auto_backup_location_mode"
KEY_CUSTOM_FOLDER = "auto_backup_custom_folder"
KEY_KEEP_COUNT = "auto_backup_keep_count"
KEY_LAST_BACKUP_AT = "last_backup_at"


class BackupFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"

    @property
    def interval_days(self) -> int:
        return 7 if self is BackupFrequency.WEEKLY else 1

    @classmethod
    def parse(cls, value: str | None) -> "BackupFrequency":
        """Unknown or missing values read as daily."""
        for member in cls:
            if member.value == value:
                return member
        return cls.DAILY


class BackupLocationMode(str, Enum):
    APP_STORAGE = "app_storage"
    CUSTOM_FOLDER = "custom_folder"

    @classmethod
    def parse(cls, value: str | None) -> "BackupLocationMode":
        """Unknown or missing values read as app storage."""
        for member in cls:
            if member.value == value:
                return member
        return cls.APP_STORAGE


@dataclass(frozen=True)
class BackupSettings:
    """User-facing backup preferences."""

    enabled: bool = True
    frequency: BackupFrequency = BackupFrequency.DAILY
    location_mode: BackupLocationMode = BackupLocationMode.APP_STORAGE
    custom_folder: str | None = None
    keep_latest_count: int = DEFAULT_BACKUP_KEEP_COUNT

    def __post_init__(self) -> None:
        if self.keep_latest_count < 1:
            object.__setattr__(self, "keep_latest_count", 1)

    @property
    def uses_custom_folder(self) -> bool:
        """True when backups should go to a configured custom folder."""
        return (
            self.location_mode is BackupLocationMode.CUSTOM_FOLDER
            and bool(self.custom_folder and self.custom_folder.strip())
        )


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _parse_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def read_settings(store: DocumentStore) -> BackupSettings:
    """Load settings, falling back to defaults for missing or malformed values."""
    return BackupSettings(
        enabled=_parse_bool(store.get_metadata(KEY_ENABLED), True),
        frequency=BackupFrequency.parse(store.get_metadata(KEY_FREQUENCY)),
        location_mode=BackupLocationMode.parse(store.get_metadata(KEY_LOCATION_MODE)),
        custom_folder=store.get_metadata(KEY_CUSTOM_FOLDER) or None,
        keep_latest_count=_parse_int(
            store.get_metadata(KEY_KEEP_COUNT), DEFAULT_BACKUP_KEEP_COUNT
        ),
    )


def save_settings(store: DocumentStore, settings: BackupSettings) -> None:
    store.set_metadata(KEY_ENABLED, "true" if settings.enabled else "false")
    store.set_metadata(KEY_FREQUENCY, settings.frequency.value)
    store.set_metadata(KEY_LOCATION_MODE, settings.location_mode.value)
    if settings.custom_folder:
        store.set_metadata(KEY_CUSTOM_FOLDER, settings.custom_folder)
    else:
        store.delete_metadata(KEY_CUSTOM_FOLDER)
    store.set_metadata(KEY_KEEP_COUNT, str(settings.keep_latest_count))


def get_last_backup_at(store: DocumentStore) -> int | None:
    """Epoch milliseconds of the last successful backup, if any."""
    value = store.get_metadata(KEY_LAST_BACKUP_AT)
    return _parse_int(value, 0) if value is not None else None


def set_last_backup_at(store: DocumentStore, timestamp_ms: int) -> None:
    store.set_metadata(KEY_LAST_BACKUP_AT, str(timestamp_ms))
