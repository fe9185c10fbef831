"""
Dataset reset endpoint - wipes students, applicants and check-ins, keeps admins
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from mealcheck.api.auth import get_current_admin
from mealcheck.database import get_db
from mealcheck.models.admin import Admin
from mealcheck.models.applicant import Applicant
from mealcheck.models.checkin import CheckIn
from mealcheck.models.student import Student

logger = logging.getLogger(__name__)

router = APIRouter()


@router.delete("/")
async def reset_dataset(
    db: AsyncSession = Depends(get_db),
    current_admin: Admin = Depends(get_current_admin),
):
    check_ins = await db.execute(delete(CheckIn))
    applicants = await db.execute(delete(Applicant))
    students = await db.execute(delete(Student))
    await db.commit()

    logger.warning(
        f"Admin '{current_admin.username}' reset the dataset: "
        f"{students.rowcount} students, {applicants.rowcount} applicants, "
        f"{check_ins.rowcount} check-ins removed"
    )
    return {
        "message": "Dataset reset",
        "students": students.rowcount,
        "applicants": applicants.rowcount,
        "check_ins": check_ins.rowcount,
    }
