"""
Seed sample data for local testing: three carded students, current-month
applicants for all of them and one check-in today.
"""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from mealcheck.database import engine, Base, AsyncSessionLocal
from mealcheck.models import Student, Applicant, CheckIn
from mealcheck.api.auth import get_password_hash
from mealcheck.utils.helpers import get_current_month, get_today

SAMPLE_STUDENTS = [
    ("1234567890", "20701"),
    ("2345678901", "20702"),
    ("3456789012", "31024"),
]


async def seed():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    month = get_current_month()
    pin_hash = get_password_hash("1234")

    async with AsyncSessionLocal() as session:
        for nfc_id, student_id in SAMPLE_STUDENTS:
            result = await session.execute(select(Student).where(Student.student_id == student_id))
            if not result.scalar_one_or_none():
                session.add(Student(nfc_id=nfc_id, has_card=True, student_id=student_id, password=pin_hash))

            result = await session.execute(
                select(Applicant).where(Applicant.student_id == student_id, Applicant.month == month)
            )
            if not result.scalar_one_or_none():
                session.add(Applicant(student_id=student_id, month=month))

        await session.flush()
        session.add(CheckIn(student_id="20701", date=get_today(), is_applicant=True))
        await session.commit()

    await engine.dispose()
    print(f"Seeded {len(SAMPLE_STUDENTS)} students (PIN 1234), applicants for {month}, 1 check-in")


if __name__ == "__main__":
    asyncio.run(seed())
