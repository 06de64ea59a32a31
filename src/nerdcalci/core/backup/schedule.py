"""Periodic backup job: decide whether a backup is due and run it."""

from loguru import logger

from nerdcalci.core.backup.manager import BackupManager, BackupResult
from nerdcalci.core.backup.settings import BackupSettings, get_last_backup_at

_DAY_MS = 24 * 60 * 60 * 1000


def is_backup_due(settings: BackupSettings, last_backup_at: int | None, now: float) -> bool:
    """Check whether the backup interval has elapsed.

    Args:
        settings: Current backup settings.
        last_backup_at: Epoch milliseconds of the last backup, or None.
        now: Current time in epoch seconds.

    Returns:
        True if automatic backups are enabled and a backup should run.
    """
    if not settings.enabled:
        return False
    if last_backup_at is None:
        return True
    interval_ms = settings.frequency.interval_days * _DAY_MS
    return int(now * 1000) - last_backup_at >= interval_ms


def run_scheduled_backup(manager: BackupManager, *, now: float | None = None) -> BackupResult | None:
    """Run one tick of the periodic backup job.

    Skips when backups are disabled or the interval has not elapsed. A
    failed backup is logged and swallowed so the scheduler keeps firing.

    Returns:
        The backup result, or None when skipped or failed.
    """
    settings = manager.settings()
    current = manager.now() if now is None else now
    if not is_backup_due(settings, get_last_backup_at(manager.store), current):
        logger.debug("Scheduled backup not due")
        return None

    try:
        return manager.backup_now()
    except Exception:
        logger.opt(exception=True).warning("Scheduled backup failed")
        return None
