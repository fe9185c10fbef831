"""
Check-in log API endpoints
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from mealcheck.api.auth import get_current_admin
from mealcheck.api.nfc import StudentInfo
from mealcheck.database import get_db
from mealcheck.exceptions import CheckInNotFound
from mealcheck.models.admin import Admin
from mealcheck.services.checkin_service import annotate_check_ins, cancel_check_in, get_day_check_ins
from mealcheck.utils.helpers import get_today
from mealcheck.utils.validators import is_valid_date

logger = logging.getLogger(__name__)

router = APIRouter()


class CheckInEntry(BaseModel):
    id: int
    student_id: str
    student_info: StudentInfo
    is_applicant: bool
    is_duplicate: bool
    check_count: int
    check_time: datetime
    photo_path: Optional[str]


class CheckInDayResponse(BaseModel):
    date: str
    count: int
    students: int
    applicants_admitted: int
    non_applicants: int
    duplicates: int
    check_ins: List[CheckInEntry]


@router.get("/", response_model=CheckInDayResponse)
async def list_check_ins(
    date: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    """One day's check-in log (defaults to today), oldest first"""
    day = date or get_today()
    if not is_valid_date(day):
        raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD")

    rows = annotate_check_ins(await get_day_check_ins(db, day))

    entries = [
        CheckInEntry(
            id=a.check_in.id,
            student_id=a.check_in.student_id,
            student_info=StudentInfo.from_student_id(a.check_in.student_id),
            is_applicant=a.check_in.is_applicant,
            is_duplicate=a.is_duplicate,
            check_count=a.check_count,
            check_time=a.check_in.check_time,
            photo_path=a.check_in.photo_path,
        )
        for a in rows
    ]

    return CheckInDayResponse(
        date=day,
        count=len(entries),
        students=len({e.student_id for e in entries}),
        applicants_admitted=len({e.student_id for e in entries if e.is_applicant}),
        non_applicants=len({e.student_id for e in entries if not e.is_applicant}),
        duplicates=sum(1 for e in entries if e.is_duplicate),
        check_ins=entries,
    )


@router.delete("/{check_in_id}")
async def cancel(
    check_in_id: int,
    db: AsyncSession = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    """Remove a single check-in from the log"""
    try:
        await cancel_check_in(db, check_in_id)
    except CheckInNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)

    logger.info(f"Admin '{current_admin.username}' cancelled check-in {check_in_id}")
    return {"message": "Check-in cancelled"}
