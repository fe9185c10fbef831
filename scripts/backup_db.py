"""
Manual database backup - same copy and retention as the startup backup.

Usage:
    python scripts/backup_db.py
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from mealcheck.exceptions import BackupUnavailable
from mealcheck.services.backup_service import BackupManager


def main():
    try:
        manager = BackupManager.from_settings()
        path = manager.create_backup()
    except BackupUnavailable as e:
        print(f"Backup skipped: {e.message}")
        sys.exit(1)

    print(f"Backup written: {path}")
    print(f"Backups kept: {len(manager.backup_files())} (max {manager.max_files})")


if __name__ == "__main__":
    main()
