"""
Check-in classification.

Every kiosk tap is appended to the check-in log. Whether a tap is a
re-entry ("duplicate") is never stored; it is derived from the same-day
log: a tap is a duplicate when the student is an applicant and already
has an earlier applicant check-in that day. Non-applicants are never
flagged, however often they come back.

Two taps for the same student landing at the same instant can both read
"no earlier check-in" and both be recorded as first admissions. No lock
is taken for this; the log still holds both rows.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mealcheck.exceptions import CardNotRegistered, CheckInNotFound
from mealcheck.models.applicant import Applicant
from mealcheck.models.checkin import CheckIn
from mealcheck.models.student import Student
from mealcheck.utils.helpers import get_current_month, get_today
from mealcheck.utils.validators import is_valid_nfc_id, is_valid_student_id

logger = logging.getLogger(__name__)


@dataclass
class CheckInOutcome:
    check_in_id: int
    student_id: str
    month: str
    date: str
    is_applicant: bool
    is_duplicate: bool
    check_count: int
    first_check_in_time: datetime
    check_time: datetime


@dataclass
class AnnotatedCheckIn:
    check_in: CheckIn
    is_duplicate: bool
    check_count: int


def annotate_check_ins(check_ins: Sequence[CheckIn]) -> list[AnnotatedCheckIn]:
    """Derive duplicate flags and per-student ordinals for one day's log.

    ``check_ins`` must already be ordered by check time.
    """
    seen_count: dict[str, int] = {}
    admitted: set[str] = set()
    annotated = []

    for ci in check_ins:
        seen_count[ci.student_id] = seen_count.get(ci.student_id, 0) + 1
        is_duplicate = ci.is_applicant and ci.student_id in admitted
        if ci.is_applicant:
            admitted.add(ci.student_id)
        annotated.append(AnnotatedCheckIn(
            check_in=ci,
            is_duplicate=is_duplicate,
            check_count=seen_count[ci.student_id],
        ))

    return annotated


async def is_applicant_for(db: AsyncSession, student_id: str, month: str) -> bool:
    result = await db.execute(
        select(Applicant.id).where(
            Applicant.student_id == student_id,
            Applicant.month == month,
        )
    )
    return result.first() is not None


async def get_day_check_ins(
    db: AsyncSession,
    day: str,
    student_id: Optional[str] = None,
) -> list[CheckIn]:
    query = (
        select(CheckIn)
        .where(CheckIn.date == day)
        .order_by(CheckIn.check_time.asc(), CheckIn.id.asc())
    )
    if student_id:
        query = query.where(CheckIn.student_id == student_id)

    result = await db.execute(query)
    return list(result.scalars().all())


async def resolve_identity(
    db: AsyncSession,
    nfc_id: Optional[str] = None,
    student_id: Optional[str] = None,
) -> Student:
    """Find the student behind a kiosk input.

    A card tag must belong to a registered student, otherwise
    CardNotRegistered is raised so the kiosk can offer registration.
    A typed student id that nobody has registered yet gets a cardless
    Student row on the spot.
    """
    if nfc_id:
        if not is_valid_nfc_id(nfc_id):
            raise ValueError("NFC id must be 10 digits")
        result = await db.execute(select(Student).where(Student.nfc_id == nfc_id))
        student = result.scalar_one_or_none()
        if not student:
            raise CardNotRegistered(nfc_id)
        return student

    if student_id:
        if not is_valid_student_id(student_id):
            raise ValueError("Student id must be 5 digits")
        result = await db.execute(select(Student).where(Student.student_id == student_id))
        student = result.scalar_one_or_none()
        if not student:
            student = Student(student_id=student_id, nfc_id=None, has_card=False)
            db.add(student)
            await db.flush()
            logger.info(f"Created cardless student {student_id} from manual check-in")
        return student

    raise ValueError("Enter an NFC id or a student id")


async def record_check_in(
    db: AsyncSession,
    student_id: str,
    photo_path: Optional[str] = None,
    now: Optional[datetime] = None,
) -> CheckInOutcome:
    """Classify a tap for today and append it to the log"""
    now = now or datetime.now()
    month = get_current_month(now)
    today = get_today(now)

    is_applicant = await is_applicant_for(db, student_id, month)
    prior = await get_day_check_ins(db, today, student_id=student_id)

    prior_applicant = [ci for ci in prior if ci.is_applicant]
    is_duplicate = is_applicant and bool(prior_applicant)

    check_in = CheckIn(
        student_id=student_id,
        date=today,
        is_applicant=is_applicant,
        photo_path=photo_path or None,
        check_time=now,
    )
    db.add(check_in)
    await db.commit()
    await db.refresh(check_in)

    if prior_applicant:
        first_time = prior_applicant[0].check_time
    elif prior:
        first_time = prior[0].check_time
    else:
        first_time = check_in.check_time

    logger.info(
        f"Check-in {student_id} on {today}: applicant={is_applicant} "
        f"duplicate={is_duplicate} count={len(prior) + 1}"
    )

    return CheckInOutcome(
        check_in_id=check_in.id,
        student_id=student_id,
        month=month,
        date=today,
        is_applicant=is_applicant,
        is_duplicate=is_duplicate,
        check_count=len(prior) + 1,
        first_check_in_time=first_time,
        check_time=check_in.check_time,
    )


async def cancel_check_in(db: AsyncSession, check_in_id: int) -> CheckIn:
    result = await db.execute(select(CheckIn).where(CheckIn.id == check_in_id))
    check_in = result.scalar_one_or_none()
    if not check_in:
        raise CheckInNotFound(check_in_id)

    await db.delete(check_in)
    await db.commit()
    logger.info(f"Cancelled check-in {check_in_id} ({check_in.student_id} on {check_in.date})")
    return check_in
