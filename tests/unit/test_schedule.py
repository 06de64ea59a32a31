"""Tests for the periodic backup job."""

from pathlib import Path

import pytest
from loguru import logger

from nerdcalci.core.backup.manager import BackupManager, BackupStatus
from nerdcalci.core.backup.schedule import is_backup_due, run_scheduled_backup
from nerdcalci.core.backup.settings import BackupFrequency, BackupSettings, save_settings
from nerdcalci.core.database.store import DocumentStore
from nerdcalci.errors import StorageError
from tests.unit.fakes import DocumentFactory, FakeClock

DAY_MS = 24 * 60 * 60 * 1000
NOW = 1_700_000_000.0
NOW_MS = int(NOW * 1000)


@pytest.fixture
def manager(store: DocumentStore, tmp_path: Path, clock: FakeClock) -> BackupManager:
    return BackupManager(store, tmp_path / "backups", clock=clock)


def test_disabled_is_never_due() -> None:
    assert not is_backup_due(BackupSettings(enabled=False), None, NOW)


def test_first_backup_is_due() -> None:
    assert is_backup_due(BackupSettings(), None, NOW)


def test_daily_interval() -> None:
    settings = BackupSettings(frequency=BackupFrequency.DAILY)
    assert not is_backup_due(settings, NOW_MS - DAY_MS + 1, NOW)
    assert is_backup_due(settings, NOW_MS - DAY_MS, NOW)


def test_weekly_interval() -> None:
    settings = BackupSettings(frequency=BackupFrequency.WEEKLY)
    assert not is_backup_due(settings, NOW_MS - 6 * DAY_MS, NOW)
    assert is_backup_due(settings, NOW_MS - 7 * DAY_MS, NOW)


def test_run_skips_when_disabled(
    manager: BackupManager, store: DocumentStore, make_document: DocumentFactory
) -> None:
    make_document("Doc", ["1"])
    save_settings(store, BackupSettings(enabled=False))
    assert run_scheduled_backup(manager) is None
    assert manager.list_backups() == []


def test_run_backs_up_once_per_interval(
    manager: BackupManager, clock: FakeClock, make_document: DocumentFactory
) -> None:
    make_document("Doc", ["1"])

    first = run_scheduled_backup(manager)
    assert first is not None
    assert first.status is BackupStatus.BACKED_UP

    clock.advance(60 * 60)
    assert run_scheduled_backup(manager) is None

    clock.advance(24 * 60 * 60)
    assert run_scheduled_backup(manager) is not None
    assert len(manager.list_backups()) == 2


def test_run_swallows_failures(
    manager: BackupManager, monkeypatch: pytest.MonkeyPatch, make_document: DocumentFactory
) -> None:
    make_document("Doc", ["1"])

    def fail() -> None:
        msg = "disk full"
        raise StorageError(msg)

    monkeypatch.setattr(manager, "backup_now", fail)
    assert run_scheduled_backup(manager) is None


def test_failure_is_logged_with_traceback(
    manager: BackupManager, monkeypatch: pytest.MonkeyPatch, make_document: DocumentFactory
) -> None:
    make_document("Doc", ["1"])

    def fail() -> None:
        msg = "disk full"
        raise StorageError(msg)

    monkeypatch.setattr(manager, "backup_now", fail)
    messages: list[str] = []
    handler = logger.add(messages.append, level="WARNING", format="{message}")
    try:
        run_scheduled_backup(manager)
    finally:
        logger.remove(handler)

    logged = "".join(messages)
    assert "Scheduled backup failed" in logged
    assert "Traceback" in logged
    assert "disk full" in logged
