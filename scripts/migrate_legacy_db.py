"""
Data Migration Script: legacy check-in database -> current schema

Imports students, applicants, check-ins and admin accounts from a copy of
the legacy SQLite database (tables Student, Applicant, CheckIn, Admin with
camelCase columns). Cardless students were stored with a "TEMP<student id>"
placeholder card id; those become nfc_id NULL / has_card False.

The current database is wiped (all four tables) before the import.

Usage:
    python scripts/migrate_legacy_db.py /path/to/legacy.db
"""

import sqlite3
import asyncio
import sys
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import delete
from mealcheck.database import AsyncSessionLocal, engine, Base
from mealcheck.models import Student, Applicant, CheckIn, Admin

LEGACY_CARDLESS_PREFIX = "TEMP"


def parse_legacy_datetime(value) -> Optional[datetime]:
    """Legacy timestamps are either epoch milliseconds or ISO-8601 strings"""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).astimezone().replace(tzinfo=None)
    text = str(value).strip()
    if text.isdigit():
        return parse_legacy_datetime(int(text))
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def convert_card_id(legacy_nfc_id: Optional[str]) -> tuple[Optional[str], bool]:
    """Map a legacy card id to (nfc_id, has_card)"""
    if not legacy_nfc_id or legacy_nfc_id.startswith(LEGACY_CARDLESS_PREFIX):
        return None, False
    return legacy_nfc_id, True


class LegacyMigration:
    """Copies rows from the legacy database into the current one"""

    def __init__(self, legacy_db_path: str):
        self.legacy_db_path = legacy_db_path
        self.legacy_conn = None
        self.stats = {
            'students': 0,
            'cardless_students': 0,
            'applicants': 0,
            'check_ins': 0,
            'admins': 0,
            'errors': []
        }

    def connect_legacy_db(self):
        print(f"Connecting to legacy database: {self.legacy_db_path}")
        self.legacy_conn = sqlite3.connect(self.legacy_db_path)
        self.legacy_conn.row_factory = sqlite3.Row

    def close_legacy_db(self):
        if self.legacy_conn:
            self.legacy_conn.close()
            print("Closed legacy database connection")

    def fetch(self, table: str) -> list:
        try:
            return self.legacy_conn.execute(f"SELECT * FROM {table}").fetchall()
        except sqlite3.OperationalError as e:
            print(f"   '{table}' table not readable ({e}), skipping")
            self.stats['errors'].append(f"{table}: {e}")
            return []

    async def migrate_all(self):
        print("=" * 60)
        print("MIGRATION: legacy check-in database -> current schema")
        print("=" * 60)

        try:
            self.connect_legacy_db()

            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            students = self.fetch("Student")
            applicants = self.fetch("Applicant")
            check_ins = self.fetch("CheckIn")
            admins = self.fetch("Admin")
            print(
                f"Legacy rows: {len(students)} students, {len(applicants)} applicants, "
                f"{len(check_ins)} check-ins, {len(admins)} admins"
            )

            async with AsyncSessionLocal() as session:
                print("\nClearing current data...")
                await session.execute(delete(CheckIn))
                await session.execute(delete(Applicant))
                await session.execute(delete(Student))
                await session.execute(delete(Admin))

                known_students = set()
                for row in students:
                    nfc_id, has_card = convert_card_id(row['nfcId'])
                    session.add(Student(
                        nfc_id=nfc_id,
                        has_card=has_card,
                        student_id=row['studentId'],
                        password=row['password'] or None,
                        created_at=parse_legacy_datetime(row['createdAt']),
                        updated_at=parse_legacy_datetime(row['updatedAt']),
                    ))
                    known_students.add(row['studentId'])
                    self.stats['students'] += 1
                    if not has_card:
                        self.stats['cardless_students'] += 1
                await session.flush()

                for row in applicants:
                    session.add(Applicant(
                        student_id=row['studentId'],
                        month=row['month'],
                        created_at=parse_legacy_datetime(row['createdAt']),
                    ))
                    self.stats['applicants'] += 1

                for row in check_ins:
                    if row['studentId'] not in known_students:
                        self.stats['errors'].append(f"CheckIn {row['id']}: unknown student {row['studentId']}")
                        continue
                    session.add(CheckIn(
                        student_id=row['studentId'],
                        date=row['date'],
                        is_applicant=bool(row['isApplicant']),
                        photo_path=row['photoPath'],
                        check_time=parse_legacy_datetime(row['checkTime']) or datetime.now(),
                    ))
                    self.stats['check_ins'] += 1

                for row in admins:
                    session.add(Admin(
                        username=row['username'],
                        password=row['password'],
                        created_at=parse_legacy_datetime(row['createdAt']),
                    ))
                    self.stats['admins'] += 1

                await session.commit()

            self.print_summary()

        except Exception as e:
            print(f"Migration failed: {e}")
            self.stats['errors'].append(str(e))
            raise
        finally:
            self.close_legacy_db()
            await engine.dispose()

    def print_summary(self):
        print("\n" + "=" * 60)
        print("MIGRATION SUMMARY")
        print("=" * 60)
        print(f"Students:           {self.stats['students']} ({self.stats['cardless_students']} without a card)")
        print(f"Applicants:         {self.stats['applicants']}")
        print(f"Check-ins:          {self.stats['check_ins']}")
        print(f"Admins:             {self.stats['admins']}")

        if self.stats['errors']:
            print(f"\nErrors: {len(self.stats['errors'])}")
            for error in self.stats['errors']:
                print(f"   - {error}")


async def main():
    if len(sys.argv) < 2:
        print("Error: Missing database path")
        print("\nUsage:")
        print("  python scripts/migrate_legacy_db.py /path/to/legacy.db")
        sys.exit(1)

    legacy_db_path = sys.argv[1]

    if not Path(legacy_db_path).exists():
        print(f"Error: Database not found at {legacy_db_path}")
        sys.exit(1)

    migration = LegacyMigration(legacy_db_path)
    await migration.migrate_all()


if __name__ == "__main__":
    asyncio.run(main())
