"""
Applicant roster API endpoints - always scoped to the current month
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from pydantic import BaseModel
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from mealcheck.api.auth import get_current_admin
from mealcheck.config import get_settings
from mealcheck.database import get_db
from mealcheck.exceptions import RosterFormatError
from mealcheck.models.admin import Admin
from mealcheck.models.applicant import Applicant
from mealcheck.services.roster_service import scan_workbook, apply_roster
from mealcheck.utils.helpers import get_current_month
from mealcheck.utils.validators import is_valid_student_id

settings = get_settings()
logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".xlsx", ".xlsm")

router = APIRouter()


class ApplicantResponse(BaseModel):
    id: int
    student_id: str
    month: str
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class ApplicantListResponse(BaseModel):
    month: str
    count: int
    applicants: List[ApplicantResponse]


class ApplicantCreate(BaseModel):
    student_id: str


@router.get("/", response_model=ApplicantListResponse)
async def list_applicants(
    db: AsyncSession = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    month = get_current_month()
    result = await db.execute(
        select(Applicant).where(Applicant.month == month).order_by(Applicant.student_id)
    )
    applicants = result.scalars().all()
    return ApplicantListResponse(month=month, count=len(applicants), applicants=applicants)


@router.post("/", response_model=ApplicantResponse)
async def add_applicant(
    data: ApplicantCreate,
    db: AsyncSession = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    if not is_valid_student_id(data.student_id):
        raise HTTPException(status_code=400, detail="Invalid student id")

    month = get_current_month()
    result = await db.execute(
        select(Applicant).where(Applicant.student_id == data.student_id, Applicant.month == month)
    )
    if result.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Already an applicant this month")

    applicant = Applicant(student_id=data.student_id, month=month)
    db.add(applicant)
    await db.commit()
    await db.refresh(applicant)
    logger.info(f"Added applicant {data.student_id} for {month}")
    return applicant


@router.delete("/{student_id}")
async def remove_applicant(
    student_id: str,
    db: AsyncSession = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    month = get_current_month()
    result = await db.execute(
        delete(Applicant).where(Applicant.student_id == student_id, Applicant.month == month)
    )
    if result.rowcount == 0:
        raise HTTPException(status_code=404, detail="Applicant not found")

    await db.commit()
    logger.info(f"Removed applicant {student_id} for {month}")
    return {"message": "Applicant removed"}


@router.post("/upload")
async def upload_roster(
    file: UploadFile = File(...),
    replace_existing: bool = Form(False),
    db: AsyncSession = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    """Load this month's applicants from a spreadsheet.

    Every 5-digit cell of the first sheet counts as a student id. With
    replace_existing the month's list is cleared first, otherwise new ids
    are merged into it.
    """
    name = (file.filename or "").lower()
    if not name.endswith(ALLOWED_EXTENSIONS):
        raise HTTPException(
            400,
            f"Upload an Excel workbook ({', '.join(ALLOWED_EXTENSIONS)}); "
            "save legacy .xls rosters as .xlsx first",
        )

    content = await file.read()
    if len(content) > settings.MAX_UPLOAD_SIZE:
        raise HTTPException(413, f"File too large. Maximum size: {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB")

    try:
        scan = scan_workbook(content)
    except RosterFormatError as e:
        raise HTTPException(status_code=400, detail=e.message)

    if not scan.student_ids:
        raise HTTPException(
            status_code=400,
            detail={"message": "No valid 5-digit student ids found", "errors": scan.errors},
        )

    month = get_current_month()
    created = await apply_roster(db, scan.student_ids, month, replace_existing=replace_existing)
    logger.info(
        f"Admin '{current_admin.username}' uploaded roster '{file.filename}': "
        f"{len(scan.student_ids)} ids, {created} new"
    )

    return {
        "message": "Applicant roster updated",
        "month": month,
        "count": created,
        "found": len(scan.student_ids),
        "errors": scan.errors,
    }
