"""
Backup utility for the meal planning database.
Snapshots are taken with the sqlite backup API so they are consistent even
while the connection is open.
"""
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import List, Optional
import logging

from mealplan.infra.database import Database
from mealplan.utilities.errors import StorageError

logger = logging.getLogger(__name__)

class BackupManager:
    """Manages timestamped backups of the database file."""

    def __init__(self, backup_dir: Path, keep: int = 10):
        self.backup_dir = Path(backup_dir)
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        self.keep = keep

    def create_backup(self, db: Database, label: str = "mealplan") -> Optional[Path]:
        """Copy the live database into a new timestamped file; None on failure."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        destination = self.backup_dir / f"{label}_{timestamp}.db"
        try:
            target = sqlite3.connect(destination)
            try:
                db.connection.backup(target)
            finally:
                target.close()
        except sqlite3.Error as e:
            logger.error(f"Backup failed for {label}: {e}")
            if destination.exists():
                destination.unlink()
            return None

        logger.info(f"Backup created: {destination.name}")
        self._cleanup_old_backups(label)
        return destination

    def _cleanup_old_backups(self, label: str):
        """Remove old backups, keeping only the most recent ones."""
        backups = self.list_backups(label)

        # list_backups is newest first
        for backup in backups[self.keep:]:
            try:
                backup.unlink()
                logger.info(f"Removed old backup: {backup.name}")
            except OSError as e:
                logger.error(f"Failed to remove old backup {backup.name}: {e}")

    def list_backups(self, label: str = "mealplan") -> List[Path]:
        """Backups for ``label``, newest first."""
        return sorted(self.backup_dir.glob(f"{label}_*.db"), key=lambda p: p.name, reverse=True)

    def restore_backup(self, db: Database, backup: Path) -> None:
        """Overwrite the live database with a backup's contents."""
        if not Path(backup).exists():
            raise StorageError("Backup not found", "restore_backup", {"backup": str(backup)})
        try:
            source = sqlite3.connect(backup)
            try:
                source.backup(db.connection)
            finally:
                source.close()
        except sqlite3.Error as e:
            raise StorageError(str(e), "restore_backup", {"backup": str(backup)}) from e
        logger.info(f"Restored backup: {Path(backup).name}")


def reset_all_data(db: Database, manager: Optional[BackupManager] = None) -> Optional[Path]:
    """Delete all local data, taking a backup first when a manager is given.

    The reset is refused if the requested backup could not be written.
    """
    backup = None
    if manager is not None:
        backup = manager.create_backup(db)
        if backup is None:
            raise StorageError("Backup before reset failed, nothing was deleted", "reset_all_data")
    db.reset_all()
    return backup
