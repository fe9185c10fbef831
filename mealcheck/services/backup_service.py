"""
SQLite database backups.

Backups are whole-database copies named ``<db file>.backup_<timestamp>``
in the backup directory. Copies go through SQLite's online backup API
rather than a raw file copy, so a backup taken while the service is
writing is still a consistent snapshot.

Only the newest ``max_files`` backups are kept; older ones are deleted
each time a backup is created.
"""
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from mealcheck.config import get_settings
from mealcheck.database import sqlite_file_path
from mealcheck.exceptions import BackupUnavailable, BackupNotFound, InvalidBackupName
from mealcheck.utils.helpers import file_timestamp, size_in_mb

logger = logging.getLogger(__name__)

BACKUP_MARKER = ".backup_"
BEFORE_RESTORE_TAG = "before_restore_"


def copy_database(source: Path, target: Path) -> None:
    """Copy one SQLite database file into another through the backup API"""
    src = sqlite3.connect(str(source))
    try:
        dst = sqlite3.connect(str(target))
        try:
            src.backup(dst)
        finally:
            dst.close()
    finally:
        src.close()


class BackupManager:
    """Create, list, prune, restore and delete backups of one database file"""

    def __init__(self, db_path: Path, backup_dir: Path, max_files: int = 30):
        self.db_path = Path(db_path)
        self.backup_dir = Path(backup_dir)
        self.max_files = max_files

    @classmethod
    def from_settings(cls) -> "BackupManager":
        settings = get_settings()
        db_path = sqlite_file_path(settings.DATABASE_URL)
        if db_path is None:
            raise BackupUnavailable("Backups are only supported for file-based SQLite databases")
        return cls(db_path, Path(settings.BACKUP_DIR), settings.BACKUP_MAX_FILES)

    @property
    def prefix(self) -> str:
        return f"{self.db_path.name}{BACKUP_MARKER}"

    def _new_backup_path(self, tag: str, now: Optional[datetime]) -> Path:
        base = f"{self.prefix}{tag}{file_timestamp(now)}"
        path = self.backup_dir / base
        counter = 1
        while path.exists():
            path = self.backup_dir / f"{base}_{counter}"
            counter += 1
        return path

    def backup_files(self) -> list[Path]:
        """Backup files, newest first"""
        if not self.backup_dir.is_dir():
            return []
        files = [
            p for p in self.backup_dir.iterdir()
            if p.is_file() and p.name.startswith(self.prefix)
        ]
        return sorted(files, key=lambda p: (p.stat().st_mtime, p.name), reverse=True)

    def resolve(self, filename: str) -> Path:
        """Map a caller-supplied file name to an existing backup"""
        if (
            not filename
            or "/" in filename
            or "\\" in filename
            or filename in (".", "..")
            or not filename.startswith(self.prefix)
        ):
            raise InvalidBackupName(filename)

        path = self.backup_dir / filename
        if not path.is_file():
            raise BackupNotFound(filename)
        return path

    def create_backup(self, now: Optional[datetime] = None) -> Path:
        if not self.db_path.exists():
            raise BackupUnavailable(f"Database file {self.db_path} does not exist")

        self.backup_dir.mkdir(parents=True, exist_ok=True)
        target = self._new_backup_path("", now)
        copy_database(self.db_path, target)
        logger.info(f"Database backed up to {target}")

        self.prune_backups()
        return target

    def prune_backups(self) -> list[str]:
        """Delete everything beyond the newest ``max_files`` backups"""
        files = self.backup_files()
        removed = []
        for old in files[self.max_files:]:
            old.unlink()
            removed.append(old.name)
            logger.info(f"Deleted old backup {old.name}")

        if removed:
            logger.info(f"Pruned {len(removed)} backups, {self.max_files} kept")
        return removed

    def list_backups(self) -> list[dict]:
        backups = []
        for path in self.backup_files():
            stat = path.stat()
            backups.append({
                "filename": path.name,
                "size": stat.st_size,
                "size_in_mb": size_in_mb(stat.st_size),
                "created_at": datetime.fromtimestamp(stat.st_mtime),
            })
        return backups

    def restore_backup(self, filename: str, now: Optional[datetime] = None) -> dict:
        """Replace the live database with a backup.

        The current database is snapshotted first; if the restore fails
        the snapshot is copied back and the error re-raised.
        """
        source = self.resolve(filename)
        if not self.db_path.exists():
            raise BackupUnavailable(f"Database file {self.db_path} does not exist")

        snapshot = self._new_backup_path(BEFORE_RESTORE_TAG, now)
        copy_database(self.db_path, snapshot)

        try:
            copy_database(source, self.db_path)
        except Exception:
            logger.exception(f"Restore from {filename} failed, rolling back to {snapshot.name}")
            copy_database(snapshot, self.db_path)
            raise

        logger.info(f"Database restored from {filename} (previous state saved as {snapshot.name})")
        return {"restored_from": filename, "temp_backup": snapshot.name}

    def delete_backup(self, filename: str) -> None:
        path = self.resolve(filename)
        path.unlink()
        logger.info(f"Deleted backup {filename}")


def startup_backup() -> Optional[Path]:
    """Back up the database at service start. Never raises."""
    try:
        manager = BackupManager.from_settings()
        if not manager.db_path.exists():
            logger.warning("No database file yet, skipping startup backup")
            return None
        return manager.create_backup()
    except Exception:
        logger.exception("Startup backup failed, continuing without a backup")
        return None
