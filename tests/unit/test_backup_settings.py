"""Tests for persisted backup settings."""

from nerdcalci.config import DEFAULT_BACKUP_KEEP_COUNT
from nerdcalci.core.backup.settings import (
    KEY_FREQUENCY,
    KEY_KEEP_COUNT,
    BackupFrequency,
    BackupLocationMode,
    BackupSettings,
    get_last_backup_at,
    read_settings,
    save_settings,
    set_last_backup_at,
)
from nerdcalci.core.database.store import DocumentStore


def test_defaults(store: DocumentStore) -> None:
    settings = read_settings(store)
    assert settings == BackupSettings()
    assert settings.enabled is True
    assert settings.frequency is BackupFrequency.DAILY
    assert settings.location_mode is BackupLocationMode.APP_STORAGE
    assert settings.custom_folder is None
    assert settings.keep_latest_count == DEFAULT_BACKUP_KEEP_COUNT


def test_save_and_read(store: DocumentStore) -> None:
    settings = BackupSettings(
        enabled=False,
        frequency=BackupFrequency.WEEKLY,
        location_mode=BackupLocationMode.CUSTOM_FOLDER,
        custom_folder="/mnt/backups",
        keep_latest_count=3,
    )
    save_settings(store, settings)
    assert read_settings(store) == settings


def test_keep_count_coerced_to_at_least_one(store: DocumentStore) -> None:
    assert BackupSettings(keep_latest_count=0).keep_latest_count == 1
    store.set_metadata(KEY_KEEP_COUNT, "-4")
    assert read_settings(store).keep_latest_count == 1


def test_malformed_values_fall_back_to_defaults(store: DocumentStore) -> None:
    store.set_metadata(KEY_FREQUENCY, "hourly")
    store.set_metadata(KEY_KEEP_COUNT, "lots")
    settings = read_settings(store)
    assert settings.frequency is BackupFrequency.DAILY
    assert settings.keep_latest_count == DEFAULT_BACKUP_KEEP_COUNT


def test_uses_custom_folder_needs_mode_and_folder() -> None:
    assert not BackupSettings(custom_folder="/x").uses_custom_folder
    assert not BackupSettings(location_mode=BackupLocationMode.CUSTOM_FOLDER).uses_custom_folder
    assert BackupSettings(
        location_mode=BackupLocationMode.CUSTOM_FOLDER, custom_folder="/x"
    ).uses_custom_folder


def test_frequency_intervals() -> None:
    assert BackupFrequency.DAILY.interval_days == 1
    assert BackupFrequency.WEEKLY.interval_days == 7


def test_last_backup_at(store: DocumentStore) -> None:
    assert get_last_backup_at(store) is None
    set_last_backup_at(store, 1_700_000_000_000)
    assert get_last_backup_at(store) == 1_700_000_000_000
